from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import ImageTypeEnum, UsageTypeEnum

class ImageDescription(Base):
    """An image a question still needs, fulfilled by a linked image with the same usage type."""
    __tablename__ = "image_descriptions"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    usage_type = Column(String(20), nullable=False, default=UsageTypeEnum.QUESTION.value)
    modality = Column(String(30), nullable=True)
    echo_view = Column(String(255), nullable=True)
    image_type = Column(String(10), nullable=False, default=ImageTypeEnum.STILL.value)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
