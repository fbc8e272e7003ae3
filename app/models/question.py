from sqlalchemy import CheckConstraint, Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.config import settings
from app.core.constants import ReviewStatusEnum

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint("correct_answer IN ('A', 'B', 'C', 'D', 'E', 'F', 'G')", name="ck_questions_correct_answer"),
        CheckConstraint(
            "difficulty_rating IS NULL OR (difficulty_rating >= 1 AND difficulty_rating <= 5)",
            name="ck_questions_difficulty_rating",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Q0001 style, assigned once right after insert
    question_number = Column(String(20), unique=True, nullable=True)
    question = Column(Text, nullable=False)
    choice_a = Column(Text, nullable=True)
    choice_b = Column(Text, nullable=True)
    choice_c = Column(Text, nullable=True)
    choice_d = Column(Text, nullable=True)
    choice_e = Column(Text, nullable=True)
    choice_f = Column(Text, nullable=True)
    choice_g = Column(Text, nullable=True)
    correct_answer = Column(String(1), nullable=False)
    explanation = Column(Text, nullable=True)
    source_folder = Column(String(255), nullable=True)

    exam_category = Column(String(100), nullable=False, default=settings.DEFAULT_EXAM_CATEGORY)
    exam_type = Column(String(100), nullable=False, default=settings.DEFAULT_EXAM_TYPE)

    review_status = Column(String(30), nullable=False, default=ReviewStatusEnum.PENDING.value, index=True)
    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    difficulty_rating = Column(Integer, nullable=True)

    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    batch_id = Column(Integer, ForeignKey("upload_batches.id", ondelete="CASCADE"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
