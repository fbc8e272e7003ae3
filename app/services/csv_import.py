import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status

from app.core.config import settings
from app.core.constants import (
    ANSWER_LETTERS, IMAGE_NEEDED_NOTE, ImageTypeEnum, ModalityEnum, ReviewStatusEnum, UsageTypeEnum,
)
from app.core.database import ResilientPool
from app.crud.image_description import image_description as crud_image_description
from app.crud.question import question as crud_question
from app.crud.upload_batch import upload_batch as crud_upload_batch
from app.schemas.question import CHOICE_FIELDS, Question, populated_letters
from app.schemas.upload_batch import CsvUploadResult, UploadBatch
from app.schemas.user import UserContext
from app.utils.permission import permission_helper

logger = logging.getLogger(__name__)

TEXT_COLUMNS = ("question",) + CHOICE_FIELDS + ("explanation", "source_folder")
IMAGE_COLUMNS = ("image_description", "image_modality", "image_view")


@dataclass
class ParsedRow:
    question: Dict[str, Any]
    description: Optional[Dict[str, Any]] = None


@dataclass
class ParsedCsv:
    rows: List[ParsedRow] = field(default_factory=list)
    skipped: int = 0

    @property
    def needs_images(self) -> int:
        return sum(1 for r in self.rows if r.description)


def _cell(record: Dict[str, Any], column: str) -> Optional[str]:
    value = record.get(column)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _pick(value: Optional[str], allowed, default: Optional[str]) -> Optional[str]:
    if value and value.lower() in {a.value for a in allowed}:
        return value.lower()
    return default


def parse_row(record: Dict[str, Any]) -> Optional[ParsedRow]:
    """Turn one CSV record into question values, or None when the row is unusable."""
    data = {column: _cell(record, column) for column in TEXT_COLUMNS}
    answer = (_cell(record, "correct_answer") or "").upper()
    if not data["question"] or answer not in ANSWER_LETTERS:
        return None
    if answer not in populated_letters(data):
        return None
    data["correct_answer"] = answer

    if not any(_cell(record, c) for c in IMAGE_COLUMNS):
        data["review_status"] = ReviewStatusEnum.PENDING.value
        data["review_notes"] = None
        return ParsedRow(question=data)

    description = {
        "description": _cell(record, "image_description") or "",
        "modality": _pick(_cell(record, "image_modality"), ModalityEnum, None),
        "echo_view": _cell(record, "image_view"),
        "usage_type": _pick(_cell(record, "image_usage"), UsageTypeEnum, UsageTypeEnum.QUESTION.value),
        "image_type": _pick(_cell(record, "image_type"), ImageTypeEnum, ImageTypeEnum.STILL.value),
    }
    data["review_status"] = ReviewStatusEnum.RETURNED.value
    data["review_notes"] = IMAGE_NEEDED_NOTE
    return ParsedRow(question=data, description=description)


def parse_csv(content: bytes) -> ParsedCsv:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file must be UTF-8 encoded")

    parsed = ParsedCsv()
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames:
        reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
    for record in reader:
        row = parse_row(record)
        if row is None:
            parsed.skipped += 1
            continue
        parsed.rows.append(row)
    return parsed


class CsvImportService:
    async def import_csv(
        self,
        pool: ResilientPool,
        *,
        content: bytes,
        file_name: Optional[str],
        context: UserContext,
        description: Optional[str] = None,
        isbn: Optional[str] = None,
        starting_page: Optional[int] = None,
        ending_page: Optional[int] = None,
        chapter: Optional[str] = None,
    ) -> Tuple[str, CsvUploadResult]:
        if not content:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No CSV file uploaded")
        parsed = parse_csv(content)
        if not parsed.rows:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid questions found in CSV file")
        if parsed.needs_images:
            await permission_helper.require_contribution_quota(pool, context, requested=parsed.needs_images)

        batch = await crud_upload_batch.create(pool, obj_in={
            "batch_name": f"Upload {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "uploaded_by": context.user.id,
            "question_count": len(parsed.rows),
            "file_name": file_name,
            "description": description or f"Batch upload of {len(parsed.rows)} questions",
            "isbn": isbn,
            "starting_page": starting_page,
            "ending_page": ending_page,
            "chapter": chapter,
        })

        exam_category = context.user.exam_category or settings.DEFAULT_EXAM_CATEGORY
        exam_type = context.user.exam_type or settings.DEFAULT_EXAM_TYPE
        # rows are written one at a time; a failure part way keeps what was already inserted
        created = []
        for row in parsed.rows:
            question = await crud_question.create(pool, obj_in={
                **row.question,
                "batch_id": batch["id"],
                "uploaded_by": context.user.id,
                "exam_category": exam_category,
                "exam_type": exam_type,
            })
            if row.description:
                await crud_image_description.create(pool, obj_in={
                    **row.description,
                    "question_id": question["id"],
                    "created_by": context.user.id,
                })
            created.append(question)

        batch = await crud_upload_batch.update_question_count(pool, id=batch["id"]) or batch
        batch = await crud_upload_batch.get_by_id(pool, id=batch["id"]) or batch

        needs_images = parsed.needs_images
        ready = len(created) - needs_images
        message = f"Successfully uploaded {len(created)} questions ({needs_images} need images, {ready} ready for review)"
        logger.info(f"CSV {file_name} imported by {context.user.username}: {message}, {parsed.skipped} rows skipped")
        return message, CsvUploadResult(
            batch=UploadBatch.model_validate(batch),
            questions=[Question.model_validate(q) for q in created],
            needs_images=needs_images,
            ready_for_review=ready,
            skipped_rows=parsed.skipped,
        )


csv_import_service = CsvImportService()
