"""
Question and image review rules.

Everything here is pure: callers pass in the current rows and get a decision
back, so the derived "ready for review" state is always recomputed from what is
stored rather than tracked in a column of its own.
"""
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from fastapi import HTTPException, status

from app.core.constants import (
    IMAGE_NEEDED_NOTE,
    REVIEW_NOTES_REQUIRED,
    ImageReviewStatusEnum,
    ReviewStatusEnum,
)

QUESTION_NUMBER_PATTERN = re.compile(r"^Q?(\d+)$")

# Statuses a reviewer may set on a question; "pending" reopens it.
REVIEW_DECISIONS = (
    ReviewStatusEnum.APPROVED.value,
    ReviewStatusEnum.REJECTED.value,
    ReviewStatusEnum.RETURNED.value,
    ReviewStatusEnum.PENDING.value,
)
NOTES_REQUIRED_FOR = (ReviewStatusEnum.REJECTED.value, ReviewStatusEnum.RETURNED.value)

IMAGE_REVIEW_DECISIONS = (
    ImageReviewStatusEnum.APPROVED.value,
    ImageReviewStatusEnum.REJECTED.value,
    ImageReviewStatusEnum.NEEDS_REVISION.value,
)

DIFFICULTY_RANGE = (1, 5)
IMAGE_RATING_RANGE = (1, 10)

STATUS_DISPLAY = {
    ReviewStatusEnum.PENDING.value: "Ready for Review",
    ReviewStatusEnum.APPROVED.value: "Approved",
    ReviewStatusEnum.REJECTED.value: "Rejected",
    ReviewStatusEnum.RETURNED.value: "Needs Rework",
}


def format_question_number(question_id: int) -> str:
    return f"Q{question_id:04d}"


def question_sort_number(question_number: Optional[str]) -> int:
    """Numeric part of ``Q0042``/``42`` style numbers, 0 for anything else."""
    if not question_number:
        return 0
    match = QUESTION_NUMBER_PATTERN.match(question_number)
    return int(match.group(1)) if match else 0


def _created_key(row: Mapping[str, Any]) -> float:
    created_at = row.get("created_at")
    return created_at.timestamp() if created_at is not None else 0.0


def sort_for_review(rows: Iterable[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Order by question number descending, then newest first."""
    return sorted(
        rows,
        key=lambda row: (question_sort_number(row.get("question_number")), _created_key(row)),
        reverse=True,
    )


def status_display(review_status: Optional[str]) -> str:
    return STATUS_DISPLAY.get(review_status, review_status or "")


def initial_review_status(image_descriptions: Sequence[Any]) -> Tuple[str, Optional[str]]:
    """Status and system note for a newly created question."""
    if image_descriptions:
        return ReviewStatusEnum.RETURNED.value, IMAGE_NEEDED_NOTE
    return ReviewStatusEnum.PENDING.value, None


def images_fulfilled(description_usages: Iterable[str], linked_usages: Iterable[str]) -> bool:
    """Every described image has a linked image with the same usage type."""
    linked = set(linked_usages)
    return all(usage in linked for usage in description_usages)


def is_ready_for_review(
    review_status: Optional[str],
    description_usages: Iterable[str],
    linked_usages: Iterable[str],
) -> bool:
    return review_status == ReviewStatusEnum.PENDING.value and images_fulfilled(
        description_usages, linked_usages
    )


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def validate_review_decision(
    review_status: Optional[str],
    notes: Optional[str],
    difficulty_rating: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Check a reviewer decision before anything is written.

    Returns the values to store: notes are stripped and the difficulty rating
    is kept only for approvals.
    """
    if review_status not in REVIEW_DECISIONS:
        raise _bad_request(
            "Invalid review status. Must be: approved, rejected, returned, or pending"
        )

    cleaned_notes = notes.strip() if notes else ""
    if review_status in NOTES_REQUIRED_FOR and not cleaned_notes:
        raise _bad_request(REVIEW_NOTES_REQUIRED)

    if difficulty_rating is not None:
        low, high = DIFFICULTY_RANGE
        if isinstance(difficulty_rating, bool) or not isinstance(difficulty_rating, int) \
                or not low <= difficulty_rating <= high:
            raise _bad_request(f"Difficulty rating must be an integer between {low} and {high}")

    return {
        "review_status": review_status,
        "review_notes": cleaned_notes,
        "difficulty_rating": difficulty_rating if review_status == ReviewStatusEnum.APPROVED.value else None,
    }


def validate_image_review(rating: Optional[int], review_status: Optional[str]) -> None:
    low, high = IMAGE_RATING_RANGE
    if rating is None or isinstance(rating, bool) or not isinstance(rating, int) \
            or not low <= rating <= high:
        raise _bad_request(f"Rating must be between {low} and {high}")
    if review_status not in IMAGE_REVIEW_DECISIONS:
        raise _bad_request("Invalid status. Must be approved, rejected, or needs_revision")
