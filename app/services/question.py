import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import HTTPException, status

from app.core.database import ResilientPool
from app.crud.image import image as crud_image
from app.crud.image_description import image_description as crud_image_description
from app.crud.question import question as crud_question
from app.crud.upload_batch import upload_batch as crud_upload_batch
from app.schemas.image import LinkedImage
from app.schemas.image_description import ImageDescription, ImageDescriptionBase
from app.schemas.question import (
    Question, QuestionCreate, QuestionDeleteResult, QuestionDetail, QuestionUpdate,
    QuestionWithNames, populated_letters,
)
from app.schemas.response import Page, Pagination
from app.schemas.upload_batch import BatchDeleteResult, BatchDetail, BatchQuestion, UploadBatch
from app.schemas.user import UserContext
from app.utils.permission import permission_helper
from app.utils.review import images_fulfilled, initial_review_status, is_ready_for_review, status_display

logger = logging.getLogger(__name__)


class QuestionService:
    async def get_or_404(self, pool: ResilientPool, question_id: int) -> Dict[str, Any]:
        row = await crud_question.get(pool, question_id)
        if not row:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
        return row

    async def list_questions(self, pool: ResilientPool, *, context: UserContext, limit: int = 50, offset: int = 0) -> Page[Question]:
        exam_category = context.user.exam_category
        exam_type = context.user.exam_type
        if not exam_category or not exam_type:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User exam settings not configured. Please configure your exam preferences in settings",
            )
        rows = await crud_question.find_all(
            pool, limit=limit, offset=offset, exam_category=exam_category, exam_type=exam_type
        )
        total = await crud_question.get_count(pool, exam_category=exam_category, exam_type=exam_type)
        return Page[Question](
            items=[Question.model_validate(r) for r in rows],
            pagination=Pagination.build(total=total, limit=limit, offset=offset),
        )

    async def get_detail(self, pool: ResilientPool, *, question_id: int) -> QuestionDetail:
        row = await self.get_or_404(pool, question_id)
        images = await crud_image.find_by_question_id(pool, question_id=question_id)
        descriptions = await crud_image_description.get_by_question_id(pool, question_id=question_id)
        described = [d["usage_type"] for d in descriptions]
        linked = [i["usage_type"] for i in images]
        return QuestionDetail(
            **row,
            images=[LinkedImage.model_validate(i) for i in images],
            image_descriptions=[ImageDescription.model_validate(d) for d in descriptions],
            images_fulfilled=images_fulfilled(described, linked),
            ready_for_review=is_ready_for_review(row["review_status"], described, linked),
        )

    async def get_images(self, pool: ResilientPool, *, question_id: int) -> List[LinkedImage]:
        await self.get_or_404(pool, question_id)
        rows = await crud_image.find_by_question_id(pool, question_id=question_id)
        return [LinkedImage.model_validate(r) for r in rows]

    async def create_question(
        self,
        pool: ResilientPool,
        *,
        question_in: QuestionCreate,
        context: UserContext,
        batch_id: Optional[int] = None,
    ) -> QuestionDetail:
        descriptions: Sequence[ImageDescriptionBase] = question_in.image_descriptions
        if descriptions:
            await permission_helper.require_contribution_quota(pool, context, requested=len(descriptions))
        review_status, note = initial_review_status(descriptions)

        data = question_in.model_dump(exclude={"image_descriptions"})
        data.update(
            exam_category=context.user.exam_category,
            exam_type=context.user.exam_type,
            review_status=review_status,
            review_notes=note,
            uploaded_by=context.user.id,
            batch_id=batch_id,
        )
        row = await crud_question.create(pool, obj_in=data)
        for description in descriptions:
            await crud_image_description.create(pool, obj_in={
                **description.model_dump(),
                "question_id": row["id"],
                "created_by": context.user.id,
            })
        logger.info(f"Question {row['question_number']} created by {context.user.username} as {review_status}")
        return await self.get_detail(pool, question_id=row["id"])

    async def update_question(self, pool: ResilientPool, *, question_id: int, update_in: QuestionUpdate, context: UserContext) -> Question:
        existing = await self.get_or_404(pool, question_id)
        permission_helper.require_owner_or_admin(
            context, existing["uploaded_by"], "You can only edit questions you uploaded."
        )
        data = update_in.model_dump(exclude_unset=True)
        if "question" in data and not (data["question"] or "").strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question text is required")

        merged = {**existing, **data}
        if merged["correct_answer"] not in populated_letters(merged):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"correct_answer {merged['correct_answer']} does not match a populated choice",
            )
        updated = await crud_question.update(pool, id=question_id, obj_in=data)
        return Question.model_validate(updated)

    async def delete_question(self, pool: ResilientPool, *, question_id: int, context: UserContext) -> QuestionDeleteResult:
        existing = await self.get_or_404(pool, question_id)
        permission_helper.require_owner_or_admin(
            context, existing["uploaded_by"], "You can only delete questions you uploaded."
        )
        return await self.delete_with_images(pool, question_id=question_id, context=context)

    async def delete_with_images(self, pool: ResilientPool, *, question_id: int, context: UserContext) -> QuestionDeleteResult:
        result = await crud_question.delete_with_images(pool, id=question_id)
        if not result:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
        logger.info(f"Question {question_id} deleted by {context.user.username}")
        return QuestionDeleteResult(**result)

    async def _with_fulfilment(self, pool: ResilientPool, rows: List[Dict[str, Any]]) -> List[QuestionWithNames]:
        usages = await crud_question.requirement_usages(pool, question_ids=[r["id"] for r in rows])
        return [
            QuestionWithNames(
                **row,
                images_fulfilled=images_fulfilled(usages[row["id"]]["described"], usages[row["id"]]["linked"]),
            )
            for row in rows
        ]

    async def my_returned(self, pool: ResilientPool, *, context: UserContext) -> List[QuestionWithNames]:
        rows = await crud_question.get_returned_for_uploader(pool, uploader_id=context.user.id)
        return await self._with_fulfilment(pool, rows)

    async def my_questions(self, pool: ResilientPool, *, context: UserContext) -> List[QuestionWithNames]:
        rows = await crud_question.get_by_uploader(pool, uploader_id=context.user.id)
        return await self._with_fulfilment(pool, rows)

    async def list_batches(self, pool: ResilientPool) -> List[UploadBatch]:
        return [UploadBatch.model_validate(b) for b in await crud_upload_batch.get_all(pool)]

    async def get_batch(self, pool: ResilientPool, *, batch_id: int) -> BatchDetail:
        batch = await crud_upload_batch.get_by_id(pool, id=batch_id)
        if not batch:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
        questions = await crud_question.get_by_batch(pool, batch_id=batch_id)
        return BatchDetail(
            batch=UploadBatch.model_validate(batch),
            questions=[BatchQuestion(**q, status_display=status_display(q["review_status"])) for q in questions],
        )

    async def delete_batch(self, pool: ResilientPool, *, batch_id: int, context: UserContext) -> BatchDeleteResult:
        deleted = await crud_upload_batch.delete_with_questions(pool, id=batch_id)
        if deleted is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
        logger.warning(f"Batch {batch_id} deleted by {context.user.username} with {deleted} questions")
        return BatchDeleteResult(batch_id=batch_id, deleted_questions=deleted)


question_service = QuestionService()
