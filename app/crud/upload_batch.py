from typing import List, Optional

from sqlalchemy import delete, func, select, update

from app.core.database import ResilientPool
from app.crud.base import CRUDBase, Row
from app.crud.question import question as crud_question
from app.models.question import Question
from app.models.upload_batch import UploadBatch
from app.models.user import User
from app.schemas.upload_batch import UploadBatchCreate

batches = UploadBatch.__table__
questions = Question.__table__
users = User.__table__


def _with_counts():
    actual = (
        select(func.count(questions.c.id))
        .where(questions.c.batch_id == batches.c.id)
        .correlate(batches)
        .scalar_subquery()
    )
    return (
        select(
            batches,
            actual.label("actual_question_count"),
            users.c.username.label("uploaded_by_username"),
        )
        .select_from(batches.outerjoin(users, users.c.id == batches.c.uploaded_by))
    )


class CRUDUploadBatch(CRUDBase[UploadBatch, UploadBatchCreate, UploadBatchCreate]):
    async def get_all(self, pool: ResilientPool) -> List[Row]:
        stmt = _with_counts().order_by(batches.c.upload_date.desc(), batches.c.id.desc())
        return (await pool.query(stmt)).rows

    async def get_by_id(self, pool: ResilientPool, *, id: int) -> Optional[Row]:
        return (await pool.query(_with_counts().where(batches.c.id == id))).first()

    async def update_question_count(self, pool: ResilientPool, *, id: int) -> Optional[Row]:
        """Sync the stored count with the questions actually in the batch."""
        actual = (
            select(func.count(questions.c.id))
            .where(questions.c.batch_id == id)
            .scalar_subquery()
        )
        stmt = (
            update(batches)
            .where(batches.c.id == id)
            .values(question_count=actual)
            .returning(*batches.c)
        )
        return (await pool.query(stmt)).first()

    async def delete_with_questions(self, pool: ResilientPool, *, id: int) -> Optional[int]:
        """Delete the batch and every question in it; None when the batch does not exist."""
        if not await self.get(pool, id):
            return None
        deleted = await crud_question.delete_by_batch(pool, batch_id=id)
        await pool.query(delete(batches).where(batches.c.id == id))
        return deleted

upload_batch = CRUDUploadBatch(UploadBatch)
