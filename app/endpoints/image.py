from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse

from app.core.constants import ImageTypeEnum, LicenseEnum, PermissionEnum
from app.core.database import ResilientPool
from app.schemas.image import (
    ContributorStats, Image, ImageAssociation, ImageFilter, ImageMetadata, ImageReviewSubmit,
    ImageUpdate, ImageUrlUpload, ImageUsageUpdate, NextImageForReview, QuestionImageLink,
)
from app.schemas.question import QuestionLink
from app.schemas.response import APIResponse, Page
from app.schemas.user import UserContext
from app.services.image import image_service
from app.utils import deps

router = APIRouter()

@router.post("/upload", status_code=status.HTTP_201_CREATED, response_model=APIResponse[Image])
async def upload_image(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    image_type: Optional[ImageTypeEnum] = Form(None),
    license: LicenseEnum = Form(LicenseEnum.USER_CONTRIBUTED),
    license_details: Optional[str] = Form(None),
    source_url: Optional[str] = Form(None),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.IMAGE_UPLOAD))
):
    metadata = ImageMetadata(
        description=description,
        tags=tags,
        image_type=image_type,
        license=license,
        license_details=license_details,
        source_url=source_url,
    )
    image = await image_service.upload(pool, file=file, metadata=metadata, context=context)
    return APIResponse(message="Image uploaded successfully", data=image)

@router.post("/upload-url", status_code=status.HTTP_201_CREATED, response_model=APIResponse[Image])
async def upload_image_from_url(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    url_in: ImageUrlUpload,
    context: UserContext = Depends(deps.require_permission(PermissionEnum.IMAGE_UPLOAD))
):
    image = await image_service.upload_from_url(pool, url_in=url_in, context=context)
    return APIResponse(message="Image uploaded from URL successfully", data=image)

@router.get("/", response_model=APIResponse[Page[Image]])
async def list_images(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    filters: ImageFilter = Depends(),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    page = await image_service.list_images(pool, filters=filters)
    return APIResponse(message="Images retrieved successfully", data=page)

@router.get("/next-for-review", response_model=APIResponse[NextImageForReview])
async def next_image_for_review(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.IMAGE_REVIEW))
):
    """Oldest pending image; ``image`` is null once the queue is empty."""
    result = await image_service.next_for_review(pool)
    message = "Next image retrieved successfully" if result.image else "No images pending review"
    return APIResponse(message=message, data=result)

@router.get("/user/stats", response_model=APIResponse[ContributorStats])
async def contributor_stats(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    stats = await image_service.contributor_stats(pool, context=context)
    return APIResponse(message="Contribution statistics retrieved successfully", data=stats)

@router.get("/serve/{filename}", response_class=FileResponse)
async def serve_local_image(
    *,
    filename: str
):
    """Bytes of an image stored in the local upload directory."""
    return FileResponse(image_service.local_file(filename))

@router.post("/{image_id}/review", response_model=APIResponse[Image])
async def review_image(
    *,
    image_id: int,
    review_in: ImageReviewSubmit,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.IMAGE_REVIEW))
):
    image = await image_service.submit_review(pool, image_id=image_id, review_in=review_in, context=context)
    return APIResponse(message="Image review submitted successfully", data=image)

@router.get("/{image_id}", response_model=APIResponse[Image])
async def get_image(
    *,
    image_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    image = await image_service.get_image(pool, image_id=image_id)
    return APIResponse(message="Image retrieved successfully", data=image)

@router.put("/{image_id}", response_model=APIResponse[Image])
async def update_image(
    *,
    image_id: int,
    update_in: ImageUpdate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    image = await image_service.update_image(pool, image_id=image_id, update_in=update_in, context=context)
    return APIResponse(message="Image updated successfully", data=image)

@router.delete("/{image_id}", response_model=APIResponse[None])
async def delete_image(
    *,
    image_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    await image_service.delete_image(pool, image_id=image_id, context=context)
    return APIResponse(message="Image deleted successfully")

@router.post("/{image_id}/associate/{question_id}", response_model=APIResponse[QuestionImageLink])
async def associate_image(
    *,
    image_id: int,
    question_id: int,
    association: ImageAssociation = ImageAssociation(),
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    link = await image_service.associate(pool, image_id=image_id, question_id=question_id, association=association)
    return APIResponse(message="Image associated with question successfully", data=link)

@router.delete("/{image_id}/associate/{question_id}", response_model=APIResponse[None])
async def remove_association(
    *,
    image_id: int,
    question_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    await image_service.remove_association(pool, image_id=image_id, question_id=question_id)
    return APIResponse(message="Image removed from question successfully")

@router.put("/{image_id}/usage/{question_id}", response_model=APIResponse[QuestionImageLink])
async def update_image_usage(
    *,
    image_id: int,
    question_id: int,
    usage_in: ImageUsageUpdate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    link = await image_service.update_usage(
        pool, image_id=image_id, question_id=question_id, usage_type=usage_in.usage_type
    )
    return APIResponse(message="Image usage updated successfully", data=link)

@router.get("/{image_id}/questions", response_model=APIResponse[List[QuestionLink]])
async def questions_for_image(
    *,
    image_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    questions = await image_service.questions_for_image(pool, image_id=image_id)
    return APIResponse(message="Linked questions retrieved successfully", data=questions)
