from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from app.core.constants import IMAGE_NEEDED_NOTE, REVIEW_NOTES_REQUIRED
from app.utils.review import (
    format_question_number, images_fulfilled, initial_review_status, is_ready_for_review,
    question_sort_number, sort_for_review, status_display, validate_image_review, validate_review_decision,
)


class TestInitialStatus:
    def test_question_without_image_needs_starts_pending(self):
        assert initial_review_status([]) == ("pending", None)

    def test_question_with_image_needs_starts_returned_with_note(self):
        review_status, note = initial_review_status([{"usage_type": "question"}])
        assert review_status == "returned"
        assert note == IMAGE_NEEDED_NOTE


class TestReadiness:
    def test_no_descriptions_is_fulfilled(self):
        assert images_fulfilled([], [])
        assert is_ready_for_review("pending", [], [])

    def test_matching_usage_fulfils(self):
        assert images_fulfilled(["question"], ["question"])

    def test_usage_mismatch_does_not_fulfil(self):
        assert not images_fulfilled(["question"], ["explanation"])

    def test_one_satisfied_and_one_unsatisfied_requirement_is_not_ready(self):
        described = ["question", "explanation"]
        linked = ["question"]
        assert not images_fulfilled(described, linked)
        assert not is_ready_for_review("pending", described, linked)

    def test_fulfilled_returned_question_is_not_ready_until_reopened(self):
        assert images_fulfilled(["question"], ["question"])
        assert not is_ready_for_review("returned", ["question"], ["question"])
        assert is_ready_for_review("pending", ["question"], ["question"])


class TestReviewDecision:
    @pytest.mark.parametrize("decision", ["rejected", "returned"])
    def test_notes_required(self, decision):
        with pytest.raises(HTTPException) as exc:
            validate_review_decision(decision, "   ")
        assert exc.value.status_code == 400
        assert exc.value.detail == REVIEW_NOTES_REQUIRED

    def test_invalid_status(self):
        with pytest.raises(HTTPException) as exc:
            validate_review_decision("published", None)
        assert exc.value.status_code == 400

    @pytest.mark.parametrize("rating", [1, 5])
    def test_difficulty_boundaries_accepted(self, rating):
        values = validate_review_decision("approved", None, rating)
        assert values["difficulty_rating"] == rating

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_difficulty_out_of_range_rejected(self, rating):
        with pytest.raises(HTTPException):
            validate_review_decision("approved", None, rating)

    def test_difficulty_only_kept_for_approval(self):
        values = validate_review_decision("returned", " add a cine loop ", 3)
        assert values["difficulty_rating"] is None
        assert values["review_notes"] == "add a cine loop"

    def test_reopen_to_pending(self):
        assert validate_review_decision("pending", None)["review_status"] == "pending"


class TestImageReview:
    @pytest.mark.parametrize("rating", [1, 10])
    def test_rating_boundaries(self, rating):
        validate_image_review(rating, "approved")

    @pytest.mark.parametrize("rating,status", [(0, "approved"), (11, "approved"), (None, "approved"), (5, "pending")])
    def test_rejected_inputs(self, rating, status):
        with pytest.raises(HTTPException):
            validate_image_review(rating, status)


class TestOrdering:
    def test_question_numbers(self):
        assert format_question_number(7) == "Q0007"
        assert question_sort_number("Q0042") == 42
        assert question_sort_number("17") == 17
        assert question_sort_number("legacy-a") == 0
        assert question_sort_number(None) == 0

    def test_number_descending_then_newest_first(self):
        now = datetime(2026, 1, 1, 12, 0, 0)
        rows = [
            {"id": 1, "question_number": "Q0002", "created_at": now},
            {"id": 2, "question_number": None, "created_at": now + timedelta(minutes=5)},
            {"id": 3, "question_number": "Q0010", "created_at": now},
            {"id": 4, "question_number": None, "created_at": now + timedelta(minutes=1)},
        ]
        assert [r["id"] for r in sort_for_review(rows)] == [3, 1, 2, 4]

    def test_status_display(self):
        assert status_display("returned") == "Needs Rework"
        assert status_display("pending submission") == "pending submission"
