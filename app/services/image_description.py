import logging
from typing import List, Optional

from fastapi import HTTPException, status

from app.core.database import ResilientPool
from app.crud.image_description import image_description as crud_image_description
from app.crud.question import question as crud_question
from app.schemas.image_description import ImageDescription, ImageDescriptionCreate, ImageDescriptionUpdate
from app.schemas.user import UserContext
from app.utils.permission import permission_helper

logger = logging.getLogger(__name__)


class ImageDescriptionService:
    async def get_or_404(self, pool: ResilientPool, description_id: int) -> dict:
        row = await crud_image_description.get(pool, description_id)
        if not row:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image description not found")
        return row

    async def _require_question_owner(self, pool: ResilientPool, *, question_id: int, context: UserContext) -> dict:
        """Image needs are question content: only its uploader or an admin may change them."""
        question = await crud_question.get(pool, question_id)
        if not question:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
        permission_helper.require_owner_or_admin(
            context, question["uploaded_by"], "You can only change image descriptions of questions you uploaded."
        )
        return question

    async def list_descriptions(
        self, pool: ResilientPool, *, batch_id: Optional[int] = None, echo_view: Optional[str] = None
    ) -> List[ImageDescription]:
        rows = await crud_image_description.get_all(pool, batch_id=batch_id, echo_view=echo_view)
        return [ImageDescription.model_validate(r) for r in rows]

    async def echo_views(self, pool: ResilientPool) -> List[str]:
        return await crud_image_description.get_distinct_echo_views(pool)

    async def for_question(
        self, pool: ResilientPool, *, question_id: int, usage_type: Optional[str] = None
    ) -> List[ImageDescription]:
        rows = await crud_image_description.get_by_question_id(pool, question_id=question_id, usage_type=usage_type)
        return [ImageDescription.model_validate(r) for r in rows]

    async def create(self, pool: ResilientPool, *, description_in: ImageDescriptionCreate, context: UserContext) -> ImageDescription:
        await permission_helper.require_contribution_quota(pool, context)
        await self._require_question_owner(pool, question_id=description_in.question_id, context=context)
        data = description_in.model_dump()
        data["created_by"] = context.user.id
        row = await crud_image_description.create(pool, obj_in=data)
        logger.info(f"Image description {row['id']} added to question {row['question_id']} by {context.user.username}")
        return ImageDescription.model_validate(row)

    async def update(
        self, pool: ResilientPool, *, description_id: int, update_in: ImageDescriptionUpdate, context: UserContext
    ) -> ImageDescription:
        existing = await self.get_or_404(pool, description_id)
        await self._require_question_owner(pool, question_id=existing["question_id"], context=context)
        row = await crud_image_description.update(pool, id=description_id, obj_in=update_in)
        return ImageDescription.model_validate(row)

    async def delete(self, pool: ResilientPool, *, description_id: int, context: UserContext) -> None:
        existing = await self.get_or_404(pool, description_id)
        await self._require_question_owner(pool, question_id=existing["question_id"], context=context)
        await crud_image_description.delete(pool, id=description_id)
        logger.info(f"Image description {description_id} deleted by {context.user.username}")

    async def delete_for_question(self, pool: ResilientPool, *, question_id: int, context: UserContext) -> int:
        await self._require_question_owner(pool, question_id=question_id, context=context)
        deleted = await crud_image_description.delete_by_question_id(pool, question_id=question_id)
        logger.info(f"{deleted} image descriptions of question {question_id} deleted by {context.user.username}")
        return deleted


image_description_service = ImageDescriptionService()
