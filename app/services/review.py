import logging
from typing import List, Optional

from fastapi import HTTPException, status

from app.core.constants import PermissionEnum, ReviewStatusEnum
from app.core.database import ResilientPool
from app.crud.question import question as crud_question
from app.schemas.question import Question, ReviewDecision, ReviewStats
from app.schemas.user import RequestContext, UserContext
from app.utils.review import REVIEW_DECISIONS, validate_review_decision

logger = logging.getLogger(__name__)


class ReviewService:
    async def pending_queue(
        self,
        pool: ResilientPool,
        *,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> List[Question]:
        rows = await crud_question.get_pending_review(pool, exam_category=exam_category, exam_type=exam_type)
        return [Question.model_validate(r) for r in rows]

    async def by_status(
        self,
        pool: ResilientPool,
        *,
        review_status: str,
        context: RequestContext,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> List[Question]:
        if review_status not in REVIEW_DECISIONS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid review status")
        if review_status != ReviewStatusEnum.APPROVED.value and not context.can(PermissionEnum.QUESTION_REVIEW):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Reviewer access required for non-approved questions",
            )
        rows = await crud_question.get_by_review_status(
            pool, review_status=review_status, exam_category=exam_category, exam_type=exam_type
        )
        return [Question.model_validate(r) for r in rows]

    async def decide(self, pool: ResilientPool, *, question_id: int, decision: ReviewDecision, context: UserContext) -> Question:
        values = validate_review_decision(decision.status, decision.notes, decision.difficulty_rating)
        updated = await crud_question.update_review_status(
            pool,
            id=question_id,
            review_status=values["review_status"],
            review_notes=values["review_notes"],
            reviewer_id=context.user.id,
            difficulty_rating=values["difficulty_rating"],
        )
        if not updated:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
        logger.info(f"Question {question_id} marked {values['review_status']} by {context.user.username}")
        return Question.model_validate(updated)

    async def stats(
        self,
        pool: ResilientPool,
        *,
        exam_category: Optional[str] = None,
        exam_type: Optional[str] = None,
    ) -> ReviewStats:
        return ReviewStats(**await crud_question.get_review_stats(
            pool, exam_category=exam_category, exam_type=exam_type
        ))


review_service = ReviewService()
