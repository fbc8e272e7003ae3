from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.core.constants import PermissionEnum
from app.core.database import ResilientPool
from app.schemas.image import LinkedImage
from app.schemas.question import (
    Question, QuestionCreate, QuestionDeleteResult, QuestionDetail, QuestionUpdate, QuestionWithNames,
)
from app.schemas.response import APIResponse, Page
from app.schemas.upload_batch import BatchDeleteResult, BatchDetail, CsvUploadResult, UploadBatch
from app.schemas.user import UserContext
from app.services.csv_import import csv_import_service
from app.services.question import question_service
from app.utils import deps

router = APIRouter()

@router.get("/", response_model=APIResponse[Page[Question]])
async def list_questions(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    """Questions in the caller's exam category and type, in review order."""
    page = await question_service.list_questions(pool, context=context, limit=limit, offset=offset)
    return APIResponse(message="Questions retrieved successfully", data=page)

@router.post("/", status_code=status.HTTP_201_CREATED, response_model=APIResponse[QuestionDetail])
async def create_question(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    question_in: QuestionCreate,
    context: UserContext = Depends(deps.require_permission(PermissionEnum.QUESTION_CREATE))
):
    created = await question_service.create_question(pool, question_in=question_in, context=context)
    return APIResponse(message="Question created successfully", data=created)

@router.post("/upload", status_code=status.HTTP_201_CREATED, response_model=APIResponse[CsvUploadResult])
async def upload_csv(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    isbn: Optional[str] = Form(None),
    starting_page: Optional[int] = Form(None),
    ending_page: Optional[int] = Form(None),
    chapter: Optional[str] = Form(None),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.QUESTION_UPLOAD))
):
    content = await file.read()
    message, result = await csv_import_service.import_csv(
        pool,
        content=content,
        file_name=file.filename,
        context=context,
        description=description,
        isbn=isbn,
        starting_page=starting_page,
        ending_page=ending_page,
        chapter=chapter,
    )
    return APIResponse(message=message, data=result)

@router.get("/my-returned", response_model=APIResponse[List[QuestionWithNames]])
async def my_returned_questions(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    questions = await question_service.my_returned(pool, context=context)
    return APIResponse(message="Returned questions retrieved successfully", data=questions)

@router.get("/my-questions", response_model=APIResponse[List[QuestionWithNames]])
async def my_questions(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    questions = await question_service.my_questions(pool, context=context)
    return APIResponse(message="Questions retrieved successfully", data=questions)

@router.get("/batches", response_model=APIResponse[List[UploadBatch]])
async def list_batches(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    batches = await question_service.list_batches(pool)
    return APIResponse(message="Upload batches retrieved successfully", data=batches)

@router.get("/batches/{batch_id}", response_model=APIResponse[BatchDetail])
async def get_batch(
    *,
    batch_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.BATCH_READ))
):
    batch = await question_service.get_batch(pool, batch_id=batch_id)
    return APIResponse(message="Upload batch retrieved successfully", data=batch)

@router.delete("/batches/{batch_id}", response_model=APIResponse[BatchDeleteResult])
async def delete_batch(
    *,
    batch_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.BATCH_DELETE))
):
    result = await question_service.delete_batch(pool, batch_id=batch_id, context=context)
    return APIResponse(
        message=f"Batch deleted successfully with {result.deleted_questions} questions",
        data=result,
    )

@router.get("/{question_id}", response_model=APIResponse[QuestionDetail])
async def get_question(
    *,
    question_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    question = await question_service.get_detail(pool, question_id=question_id)
    return APIResponse(message="Question retrieved successfully", data=question)

@router.put("/{question_id}", response_model=APIResponse[Question])
async def update_question(
    *,
    question_id: int,
    update_in: QuestionUpdate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    updated = await question_service.update_question(
        pool, question_id=question_id, update_in=update_in, context=context
    )
    return APIResponse(message="Question updated successfully", data=updated)

@router.delete("/{question_id}", response_model=APIResponse[QuestionDeleteResult])
async def delete_question(
    *,
    question_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    result = await question_service.delete_question(pool, question_id=question_id, context=context)
    return APIResponse(message="Question deleted successfully", data=result)

@router.delete("/{question_id}/with-images", response_model=APIResponse[QuestionDeleteResult])
async def delete_question_with_images(
    *,
    question_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.QUESTION_DELETE_WITH_IMAGES))
):
    """Delete a question with its image descriptions and image links; the images themselves stay."""
    result = await question_service.delete_with_images(pool, question_id=question_id, context=context)
    return APIResponse(
        message=f"Question {result.question_number} deleted with {result.descriptions_deleted} image descriptions",
        data=result,
    )

@router.get("/{question_id}/images", response_model=APIResponse[List[LinkedImage]])
async def get_question_images(
    *,
    question_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    images = await question_service.get_images(pool, question_id=question_id)
    return APIResponse(message="Question images retrieved successfully", data=images)
