from typing import List, Optional

from fastapi import APIRouter, Depends

from app.core.constants import PermissionEnum
from app.core.database import ResilientPool
from app.schemas.question import Question, ReviewDecision, ReviewStats
from app.schemas.response import APIResponse
from app.schemas.user import RequestContext, UserContext
from app.services.review import review_service
from app.utils import deps

router = APIRouter()

@router.get("/pending", response_model=APIResponse[List[Question]])
async def pending_questions(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    exam_category: Optional[str] = None,
    exam_type: Optional[str] = None,
    context: UserContext = Depends(deps.require_permission(PermissionEnum.QUESTION_REVIEW))
):
    """Pending questions whose declared images are all linked."""
    questions = await review_service.pending_queue(pool, exam_category=exam_category, exam_type=exam_type)
    return APIResponse(message="Pending questions retrieved successfully", data=questions)

@router.get("/status/{review_status}", response_model=APIResponse[List[Question]])
async def questions_by_status(
    *,
    review_status: str,
    pool: ResilientPool = Depends(deps.get_pool),
    exam_category: Optional[str] = None,
    exam_type: Optional[str] = None,
    context: RequestContext = Depends(deps.get_request_context)
):
    questions = await review_service.by_status(
        pool, review_status=review_status, context=context, exam_category=exam_category, exam_type=exam_type
    )
    return APIResponse(message=f"Questions with status {review_status} retrieved successfully", data=questions)

@router.get("/stats", response_model=APIResponse[ReviewStats])
async def review_stats(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    exam_category: Optional[str] = None,
    exam_type: Optional[str] = None,
    context: UserContext = Depends(deps.require_permission(PermissionEnum.QUESTION_REVIEW))
):
    stats = await review_service.stats(pool, exam_category=exam_category, exam_type=exam_type)
    return APIResponse(message="Review statistics retrieved successfully", data=stats)

@router.post("/{question_id}", response_model=APIResponse[Question])
async def review_question(
    *,
    question_id: int,
    decision: ReviewDecision,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.QUESTION_REVIEW))
):
    question = await review_service.decide(pool, question_id=question_id, decision=decision, context=context)
    return APIResponse(message=f"Question {question.review_status} successfully", data=question)
