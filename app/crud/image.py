from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite

from app.core.constants import ImageReviewStatusEnum
from app.core.database import ResilientPool
from app.crud.base import CRUDBase, Row
from app.models.image import Image, QuestionImage
from app.models.question import Question
from app.schemas.image import ImageMetadata, ImageUpdate

images = Image.__table__
question_images = QuestionImage.__table__
questions = Question.__table__

UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _tags_overlap(row: Row, wanted: List[str]) -> bool:
    have = {str(t).lower() for t in (row.get("tags") or [])}
    return any(tag.lower() in have for tag in wanted)


class CRUDImage(CRUDBase[Image, ImageMetadata, ImageUpdate]):
    def _filter_criteria(self, image_type: Optional[str], license: Optional[str]) -> List[Any]:
        criteria = []
        if image_type:
            criteria.append(images.c.image_type == image_type)
        if license:
            criteria.append(images.c.license == license)
        return criteria

    def _filtered_select(self, image_type: Optional[str], license: Optional[str]):
        stmt = select(images).order_by(images.c.created_at.desc(), images.c.id.desc())
        criteria = self._filter_criteria(image_type, license)
        if criteria:
            stmt = stmt.where(*criteria)
        return stmt

    async def _tagged(
        self,
        pool: ResilientPool,
        *,
        tags: List[str],
        image_type: Optional[str] = None,
        license: Optional[str] = None,
    ) -> List[Row]:
        rows = (await pool.query(self._filtered_select(image_type, license))).rows
        # JSON columns have no portable overlap operator
        return [row for row in rows if _tags_overlap(row, tags)]

    async def find_all(
        self,
        pool: ResilientPool,
        *,
        limit: int = 50,
        offset: int = 0,
        image_type: Optional[str] = None,
        license: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> List[Row]:
        if tags:
            rows = await self._tagged(pool, tags=tags, image_type=image_type, license=license)
            return rows[offset:offset + limit]
        stmt = self._filtered_select(image_type, license).offset(offset).limit(limit)
        return (await pool.query(stmt)).rows

    async def get_count(
        self,
        pool: ResilientPool,
        *,
        image_type: Optional[str] = None,
        license: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> int:
        if tags:
            return len(await self._tagged(pool, tags=tags, image_type=image_type, license=license))
        return await self.count(pool, *self._filter_criteria(image_type, license))

    async def associate_with_question(
        self,
        pool: ResilientPool,
        *,
        question_id: int,
        image_id: int,
        display_order: int = 1,
        usage_type: str = "question",
    ) -> Row:
        """Link an image to a question; an existing link gets the new order and usage."""
        dialect_insert = UPSERT_INSERTS.get(pool.dialect_name)
        values = dict(
            question_id=question_id,
            image_id=image_id,
            display_order=display_order,
            usage_type=usage_type,
        )
        if dialect_insert is None:
            existing = await self.get_link(pool, question_id=question_id, image_id=image_id)
            if existing:
                return await self.update_image_usage(
                    pool, question_id=question_id, image_id=image_id,
                    usage_type=usage_type, display_order=display_order,
                )
            stmt = insert(question_images).values(**values).returning(*question_images.c)
            return (await pool.query(stmt)).first()

        stmt = dialect_insert(question_images).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[question_images.c.question_id, question_images.c.image_id],
            set_={"display_order": display_order, "usage_type": usage_type},
        ).returning(*question_images.c)
        return (await pool.query(stmt)).first()

    async def get_link(self, pool: ResilientPool, *, question_id: int, image_id: int) -> Optional[Row]:
        stmt = select(question_images).where(
            question_images.c.question_id == question_id,
            question_images.c.image_id == image_id,
        )
        return (await pool.query(stmt)).first()

    async def update_image_usage(
        self,
        pool: ResilientPool,
        *,
        question_id: int,
        image_id: int,
        usage_type: str,
        display_order: Optional[int] = None,
    ) -> Optional[Row]:
        values: Dict[str, Any] = {"usage_type": usage_type}
        if display_order is not None:
            values["display_order"] = display_order
        stmt = (
            update(question_images)
            .where(
                question_images.c.question_id == question_id,
                question_images.c.image_id == image_id,
            )
            .values(**values)
            .returning(*question_images.c)
        )
        return (await pool.query(stmt)).first()

    async def remove_from_question(self, pool: ResilientPool, *, question_id: int, image_id: int) -> bool:
        stmt = delete(question_images).where(
            question_images.c.question_id == question_id,
            question_images.c.image_id == image_id,
        )
        return (await pool.query(stmt)).rowcount > 0

    async def find_by_question_id(self, pool: ResilientPool, *, question_id: int) -> List[Row]:
        stmt = (
            select(images, question_images.c.display_order, question_images.c.usage_type)
            .select_from(images.join(question_images, question_images.c.image_id == images.c.id))
            .where(question_images.c.question_id == question_id)
            .order_by(question_images.c.display_order, images.c.id)
        )
        return (await pool.query(stmt)).rows

    async def find_questions_for_image(self, pool: ResilientPool, *, image_id: int) -> List[Row]:
        stmt = (
            select(
                questions.c.id,
                questions.c.question_number,
                questions.c.question,
                question_images.c.usage_type,
                question_images.c.display_order,
            )
            .select_from(questions.join(question_images, question_images.c.question_id == questions.c.id))
            .where(question_images.c.image_id == image_id)
            .order_by(questions.c.id)
        )
        return (await pool.query(stmt)).rows

    async def linked_usage_types(self, pool: ResilientPool, *, question_id: int) -> List[str]:
        stmt = select(question_images.c.usage_type).where(question_images.c.question_id == question_id)
        return [row["usage_type"] for row in (await pool.query(stmt)).rows]

    async def count_by_user(self, pool: ResilientPool, *, user_id: int) -> int:
        return await self.count(pool, images.c.uploaded_by == user_id)

    async def get_next_for_review(self, pool: ResilientPool) -> Optional[Row]:
        stmt = (
            select(images)
            .where(images.c.review_status == ImageReviewStatusEnum.PENDING.value)
            .order_by(images.c.created_at.asc(), images.c.id.asc())
            .limit(1)
        )
        return (await pool.query(stmt)).first()

    async def submit_review(
        self,
        pool: ResilientPool,
        *,
        image_id: int,
        reviewer_id: int,
        rating: int,
        review_status: str,
    ) -> Optional[Row]:
        """Record a review; only images still pending are updated."""
        stmt = (
            update(images)
            .where(
                images.c.id == image_id,
                images.c.review_status == ImageReviewStatusEnum.PENDING.value,
            )
            .values(
                review_status=review_status,
                review_rating=rating,
                reviewed_by=reviewer_id,
                reviewed_at=datetime.now(timezone.utc),
            )
            .returning(*images.c)
        )
        return (await pool.query(stmt)).first()

    async def get_review_stats(self, pool: ResilientPool) -> Dict[str, int]:
        pending = func.count(case((images.c.review_status == ImageReviewStatusEnum.PENDING.value, 1)))
        stmt = select(func.count().label("total"), pending.label("remaining")).select_from(images)
        row = (await pool.query(stmt)).first() or {}
        total = int(row.get("total") or 0)
        remaining = int(row.get("remaining") or 0)
        return {"total": total, "reviewed": total - remaining, "remaining": remaining}

    async def delete(self, pool: ResilientPool, *, id: Any) -> Optional[Row]:
        await pool.query(delete(question_images).where(question_images.c.image_id == id))
        return await super().delete(pool, id=id)

image = CRUDImage(Image)
