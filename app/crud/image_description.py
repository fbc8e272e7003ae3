from typing import List, Optional

from sqlalchemy import delete, select

from app.core.database import ResilientPool
from app.crud.base import CRUDBase, Row
from app.models.image_description import ImageDescription
from app.models.question import Question
from app.schemas.image_description import ImageDescriptionCreate, ImageDescriptionUpdate

descriptions = ImageDescription.__table__
questions = Question.__table__

class CRUDImageDescription(CRUDBase[ImageDescription, ImageDescriptionCreate, ImageDescriptionUpdate]):
    async def get_all(
        self,
        pool: ResilientPool,
        *,
        batch_id: Optional[int] = None,
        echo_view: Optional[str] = None,
        skip: int = 0,
        limit: int = 500,
    ) -> List[Row]:
        stmt = select(descriptions)
        if batch_id is not None:
            stmt = stmt.join(questions, questions.c.id == descriptions.c.question_id).where(
                questions.c.batch_id == batch_id
            )
        if echo_view:
            stmt = stmt.where(descriptions.c.echo_view == echo_view)
        stmt = (
            stmt.order_by(descriptions.c.created_at.desc(), descriptions.c.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return (await pool.query(stmt)).rows

    async def get_by_question_id(
        self, pool: ResilientPool, *, question_id: int, usage_type: Optional[str] = None
    ) -> List[Row]:
        stmt = select(descriptions).where(descriptions.c.question_id == question_id)
        if usage_type:
            stmt = stmt.where(descriptions.c.usage_type == usage_type)
        return (await pool.query(stmt.order_by(descriptions.c.id))).rows

    async def delete_by_question_id(self, pool: ResilientPool, *, question_id: int) -> int:
        stmt = delete(descriptions).where(descriptions.c.question_id == question_id)
        return (await pool.query(stmt)).rowcount

    async def get_distinct_echo_views(self, pool: ResilientPool) -> List[str]:
        stmt = (
            select(descriptions.c.echo_view)
            .where(descriptions.c.echo_view.is_not(None), descriptions.c.echo_view != "")
            .distinct()
            .order_by(descriptions.c.echo_view)
        )
        return [row["echo_view"] for row in (await pool.query(stmt)).rows]

    async def count_by_user(self, pool: ResilientPool, *, user_id: int) -> int:
        return await self.count(pool, descriptions.c.created_by == user_id)

image_description = CRUDImageDescription(ImageDescription)
