from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import ImageReviewStatusEnum, ImageTypeEnum, LicenseEnum, UsageTypeEnum

class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    # Absolute URL for object storage, anything else is a legacy local path
    file_path = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String(100), nullable=False)
    image_type = Column(String(10), nullable=False, default=ImageTypeEnum.STILL.value)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    license = Column(String(50), nullable=False, default=LicenseEnum.USER_CONTRIBUTED.value)
    license_details = Column(Text, nullable=True)
    source_url = Column(Text, nullable=True)
    exam_category = Column(String(100), nullable=True)
    exam_type = Column(String(100), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    review_status = Column(String(30), nullable=False, default=ImageReviewStatusEnum.PENDING.value, index=True)
    review_rating = Column(Integer, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class QuestionImage(Base):
    __tablename__ = "question_images"
    __table_args__ = (
        UniqueConstraint("question_id", "image_id", name="uq_question_images_question_image"),
    )

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=1)
    usage_type = Column(String(20), nullable=False, default=UsageTypeEnum.QUESTION.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
