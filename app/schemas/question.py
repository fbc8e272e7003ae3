from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.core.constants import ANSWER_LETTERS, ReviewStatusEnum
from app.schemas.image import LinkedImage
from app.schemas.image_description import ImageDescription, ImageDescriptionBase

CHOICE_FIELDS = tuple(f"choice_{letter.lower()}" for letter in ANSWER_LETTERS)


def populated_letters(data: Dict[str, Any]) -> List[str]:
    """Answer letters whose choice text is non-blank."""
    return [
        letter for letter, field in zip(ANSWER_LETTERS, CHOICE_FIELDS)
        if data.get(field) and str(data.get(field)).strip()
    ]


class QuestionBase(BaseModel):
    question: str
    choice_a: Optional[str] = None
    choice_b: Optional[str] = None
    choice_c: Optional[str] = None
    choice_d: Optional[str] = None
    choice_e: Optional[str] = None
    choice_f: Optional[str] = None
    choice_g: Optional[str] = None
    correct_answer: str
    explanation: Optional[str] = None
    source_folder: Optional[str] = None


class QuestionCreate(QuestionBase):
    # declared image needs; any makes the question start returned
    image_descriptions: List[ImageDescriptionBase] = []

    @field_validator("correct_answer")
    def validate_correct_answer(cls, v):
        v = v.strip().upper() if v else v
        if v not in ANSWER_LETTERS:
            raise ValueError("correct_answer must be A, B, C, D, E, F, or G")
        return v

    @field_validator("question")
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Question text is required")
        return v

    @model_validator(mode="after")
    def answer_names_populated_choice(self):
        if self.correct_answer not in populated_letters(self.model_dump()):
            raise ValueError(f"correct_answer {self.correct_answer} does not match a populated choice")
        return self

class QuestionUpdate(BaseModel):
    """Content update by the uploader; review fields are changed only through review decisions."""
    question: Optional[str] = None
    choice_a: Optional[str] = None
    choice_b: Optional[str] = None
    choice_c: Optional[str] = None
    choice_d: Optional[str] = None
    choice_e: Optional[str] = None
    choice_f: Optional[str] = None
    choice_g: Optional[str] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    source_folder: Optional[str] = None

    @field_validator("correct_answer")
    def validate_correct_answer(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if v not in ANSWER_LETTERS:
            raise ValueError("correct_answer must be A, B, C, D, E, F, or G")
        return v

class Question(QuestionBase):
    id: int
    question_number: Optional[str] = None
    exam_category: Optional[str] = None
    exam_type: Optional[str] = None
    review_status: str = ReviewStatusEnum.PENDING.value
    review_notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    difficulty_rating: Optional[int] = None
    uploaded_by: Optional[int] = None
    batch_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class QuestionWithNames(Question):
    uploader_name: Optional[str] = None
    reviewer_name: Optional[str] = None
    images_fulfilled: Optional[bool] = None

class QuestionDetail(Question):
    images: List[LinkedImage] = []
    image_descriptions: List[ImageDescription] = []
    images_fulfilled: bool = True
    ready_for_review: bool = False

class ReviewDecision(BaseModel):
    # validated by app.utils.review so invalid values surface as 400s
    status: str
    notes: Optional[str] = None
    difficulty_rating: Optional[int] = None

class ReviewStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    returned: int = 0
    pending_submission: int = 0

class QuestionLink(BaseModel):
    """A question an image is linked to."""
    id: int
    question_number: Optional[str] = None
    question: str
    usage_type: str
    display_order: int

class QuestionDeleteResult(BaseModel):
    id: int
    question_number: Optional[str] = None
    descriptions_deleted: int = 0
