from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Integer, case, cast, delete, func, or_, select, update

from app.core.constants import ReviewStatusEnum
from app.core.database import ResilientPool
from app.crud.base import CRUDBase, Row
from app.models.image import QuestionImage
from app.models.image_description import ImageDescription
from app.models.question import Question
from app.models.user import User
from app.schemas.question import QuestionCreate, QuestionUpdate
from app.utils.review import format_question_number, sort_for_review

questions = Question.__table__
descriptions = ImageDescription.__table__
question_images = QuestionImage.__table__
users = User.__table__


def _number_sort_key():
    """Numeric part of the assigned ``Q0042`` number; 0 until one is assigned."""
    return func.coalesce(cast(func.substr(questions.c.question_number, 2), Integer), 0)


def _has_descriptions():
    return (
        select(descriptions.c.id)
        .where(descriptions.c.question_id == questions.c.id)
        .correlate(questions)
        .exists()
    )


def _has_unfulfilled_description():
    """A description with no linked image of the same usage type."""
    linked_same_usage = (
        select(question_images.c.id)
        .where(
            question_images.c.question_id == questions.c.id,
            question_images.c.usage_type == descriptions.c.usage_type,
        )
        .correlate(questions, descriptions)
        .exists()
    )
    return (
        select(descriptions.c.id)
        .where(descriptions.c.question_id == questions.c.id, ~linked_same_usage)
        .correlate(questions)
        .exists()
    )


def _described_but_no_images():
    any_linked = (
        select(question_images.c.id)
        .where(question_images.c.question_id == questions.c.id)
        .correlate(questions)
        .exists()
    )
    return (
        select(descriptions.c.id)
        .where(descriptions.c.question_id == questions.c.id, ~any_linked)
        .correlate(questions)
        .exists()
    )


class CRUDQuestion(CRUDBase[Question, QuestionCreate, QuestionUpdate]):
    def _exam_filter(self, exam_category: Optional[str], exam_type: Optional[str]) -> List[Any]:
        # both or nothing
        if exam_category and exam_type:
            return [questions.c.exam_category == exam_category, questions.c.exam_type == exam_type]
        return []

    async def create(self, pool: ResilientPool, *, obj_in) -> Row:
        row = await super().create(pool, obj_in=obj_in)
        return await self.assign_question_number(pool, id=row["id"]) or row

    async def bulk_create(self, pool: ResilientPool, *, objs_in: List[Dict[str, Any]]) -> List[Row]:
        return [await self.create(pool, obj_in=data) for data in objs_in]

    async def assign_question_number(self, pool: ResilientPool, *, id: int) -> Optional[Row]:
        stmt = (
            update(questions)
            .where(questions.c.id == id, questions.c.question_number.is_(None))
            .values(question_number=format_question_number(id))
            .returning(*questions.c)
        )
        return (await pool.query(stmt)).first()

    async def find_all(
        self,
        pool: ResilientPool,
        *,
        limit: int = 50,
        offset: int = 0,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> List[Row]:
        criteria = self._exam_filter(exam_category, exam_type)
        stmt = select(questions)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = stmt.order_by(
            _number_sort_key().desc(), questions.c.created_at.desc(), questions.c.id.desc()
        ).offset(offset).limit(limit)
        return (await pool.query(stmt)).rows

    async def get_count(
        self,
        pool: ResilientPool,
        *,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> int:
        return await self.count(pool, *self._exam_filter(exam_category, exam_type))

    async def get_pending_review(
        self,
        pool: ResilientPool,
        *,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> List[Row]:
        """Pending questions whose every image description is fulfilled."""
        criteria = [
            questions.c.review_status == ReviewStatusEnum.PENDING.value,
            or_(~_has_descriptions(), ~_has_unfulfilled_description()),
        ]
        if exam_category:
            criteria.append(questions.c.exam_category == exam_category)
        if exam_type:
            criteria.append(questions.c.exam_type == exam_type)
        rows = (await pool.query(select(questions).where(*criteria))).rows
        return sort_for_review(rows)

    async def get_by_review_status(
        self,
        pool: ResilientPool,
        *,
        review_status: str,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> List[Row]:
        criteria = [questions.c.review_status == review_status]
        if review_status in (ReviewStatusEnum.APPROVED.value, ReviewStatusEnum.PENDING.value):
            criteria.append(~_described_but_no_images())
        criteria.extend(self._exam_filter(exam_category, exam_type))
        rows = (await pool.query(select(questions).where(*criteria))).rows
        return sort_for_review(rows)

    async def update_review_status(
        self,
        pool: ResilientPool,
        *,
        id: int,
        review_status: str,
        review_notes: str,
        reviewer_id: int,
        difficulty_rating: Optional[int] = None,
    ) -> Optional[Row]:
        stmt = (
            update(questions)
            .where(questions.c.id == id)
            .values(
                review_status=review_status,
                review_notes=review_notes,
                reviewed_by=reviewer_id,
                reviewed_at=datetime.now(timezone.utc),
                difficulty_rating=difficulty_rating,
            )
            .returning(*questions.c)
        )
        return (await pool.query(stmt)).first()

    async def get_by_uploader(self, pool: ResilientPool, *, uploader_id: int) -> List[Row]:
        stmt = (
            select(questions, users.c.username.label("uploader_name"))
            .select_from(questions.outerjoin(users, users.c.id == questions.c.uploaded_by))
            .where(questions.c.uploaded_by == uploader_id)
            .order_by(questions.c.created_at.desc(), questions.c.id.desc())
        )
        return (await pool.query(stmt)).rows

    async def get_returned_for_uploader(self, pool: ResilientPool, *, uploader_id: int) -> List[Row]:
        reviewers = users.alias("reviewers")
        stmt = (
            select(
                questions,
                users.c.username.label("uploader_name"),
                reviewers.c.username.label("reviewer_name"),
            )
            .select_from(
                questions
                .outerjoin(users, users.c.id == questions.c.uploaded_by)
                .outerjoin(reviewers, reviewers.c.id == questions.c.reviewed_by)
            )
            .where(
                questions.c.uploaded_by == uploader_id,
                questions.c.review_status == ReviewStatusEnum.RETURNED.value,
            )
            .order_by(questions.c.reviewed_at.desc(), questions.c.id.desc())
        )
        return (await pool.query(stmt)).rows

    async def get_review_stats(
        self,
        pool: ResilientPool,
        *,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> Dict[str, int]:
        def count_status(value: str):
            return func.count(case((questions.c.review_status == value, 1)))

        stmt = select(
            func.count().label("total"),
            count_status(ReviewStatusEnum.PENDING.value).label("pending"),
            count_status(ReviewStatusEnum.APPROVED.value).label("approved"),
            count_status(ReviewStatusEnum.REJECTED.value).label("rejected"),
            count_status(ReviewStatusEnum.RETURNED.value).label("returned"),
            count_status(ReviewStatusEnum.PENDING_SUBMISSION.value).label("pending_submission"),
        ).select_from(questions)
        criteria = []
        if exam_category:
            criteria.append(questions.c.exam_category == exam_category)
        if exam_type:
            criteria.append(questions.c.exam_type == exam_type)
        if criteria:
            stmt = stmt.where(*criteria)
        row = (await pool.query(stmt)).first() or {}
        return {key: int(value or 0) for key, value in row.items()}

    async def get_by_batch(self, pool: ResilientPool, *, batch_id: int) -> List[Row]:
        stmt = (
            select(questions)
            .where(questions.c.batch_id == batch_id)
            .order_by(questions.c.question_number, questions.c.id)
        )
        return (await pool.query(stmt)).rows

    async def _delete_dependents(self, pool: ResilientPool, question_ids: List[int]) -> int:
        if not question_ids:
            return 0
        result = await pool.query(
            delete(descriptions).where(descriptions.c.question_id.in_(question_ids))
        )
        await pool.query(
            delete(question_images).where(question_images.c.question_id.in_(question_ids))
        )
        return result.rowcount

    async def delete_with_images(self, pool: ResilientPool, *, id: int) -> Optional[Dict[str, Any]]:
        """Delete the question with its image descriptions and image links; images themselves stay."""
        existing = await self.get(pool, id)
        if not existing:
            return None
        removed = await self._delete_dependents(pool, [id])
        deleted = await self.delete(pool, id=id)
        if not deleted:
            return None
        return {"id": id, "question_number": deleted.get("question_number"), "descriptions_deleted": removed}

    async def delete_by_batch(self, pool: ResilientPool, *, batch_id: int) -> int:
        ids = [row["id"] for row in (await pool.query(
            select(questions.c.id).where(questions.c.batch_id == batch_id)
        )).rows]
        await self._delete_dependents(pool, ids)
        if not ids:
            return 0
        result = await pool.query(delete(questions).where(questions.c.batch_id == batch_id))
        return result.rowcount

    async def requirement_usages(
        self, pool: ResilientPool, *, question_ids: List[int]
    ) -> Dict[int, Dict[str, List[str]]]:
        """Usage types described and linked, per question."""
        usages: Dict[int, Dict[str, List[str]]] = {
            qid: {"described": [], "linked": []} for qid in question_ids
        }
        if not question_ids:
            return usages
        described = await pool.query(
            select(descriptions.c.question_id, descriptions.c.usage_type)
            .where(descriptions.c.question_id.in_(question_ids))
        )
        for row in described.rows:
            usages[row["question_id"]]["described"].append(row["usage_type"])
        linked = await pool.query(
            select(question_images.c.question_id, question_images.c.usage_type)
            .where(question_images.c.question_id.in_(question_ids))
        )
        for row in linked.rows:
            usages[row["question_id"]]["linked"].append(row["usage_type"])
        return usages

question = CRUDQuestion(Question)
