from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.core.database import Base

class UploadBatch(Base):
    __tablename__ = "upload_batches"

    id = Column(Integer, primary_key=True, index=True)
    batch_name = Column(String(255), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    upload_date = Column(DateTime(timezone=True), server_default=func.now())
    question_count = Column(Integer, nullable=False, default=0)
    file_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    isbn = Column(String(20), nullable=True)
    starting_page = Column(Integer, nullable=True)
    ending_page = Column(Integer, nullable=True)
    chapter = Column(String(255), nullable=True)
