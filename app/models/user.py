from sqlalchemy import Boolean, Column, String, Integer, DateTime
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.config import settings

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    # Role flags, mapped to capabilities in app.utils.permission
    is_active = Column(Boolean(), nullable=False, default=True)
    is_admin = Column(Boolean(), nullable=False, default=False)
    is_reviewer = Column(Boolean(), nullable=False, default=False)
    is_image_contributor = Column(Boolean(), nullable=False, default=False)

    # Content partition preference
    exam_category = Column(String(100), nullable=True, default=settings.DEFAULT_EXAM_CATEGORY)
    exam_type = Column(String(100), nullable=True, default=settings.DEFAULT_EXAM_TYPE)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)
