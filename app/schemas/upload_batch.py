from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from app.schemas.question import Question

class UploadBatchCreate(BaseModel):
    batch_name: str
    uploaded_by: Optional[int] = None
    question_count: int = 0
    file_name: Optional[str] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    starting_page: Optional[int] = None
    ending_page: Optional[int] = None
    chapter: Optional[str] = None

class UploadBatch(UploadBatchCreate):
    id: int
    upload_date: Optional[datetime] = None
    actual_question_count: Optional[int] = None
    uploaded_by_username: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class BatchQuestion(Question):
    status_display: str

class BatchDetail(BaseModel):
    batch: UploadBatch
    questions: List[BatchQuestion]

class BatchDeleteResult(BaseModel):
    batch_id: int
    deleted_questions: int

class CsvUploadResult(BaseModel):
    batch: UploadBatch
    questions: List[Question]
    needs_images: int
    ready_for_review: int
    skipped_rows: int
