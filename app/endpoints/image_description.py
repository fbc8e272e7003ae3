from typing import List, Optional

from fastapi import APIRouter, Depends, status

from app.core.constants import PermissionEnum, UsageTypeEnum
from app.core.database import ResilientPool
from app.schemas.image_description import ImageDescription, ImageDescriptionCreate, ImageDescriptionUpdate
from app.schemas.response import APIResponse
from app.schemas.user import UserContext
from app.services.image_description import image_description_service
from app.utils import deps

router = APIRouter()

@router.get("/", response_model=APIResponse[List[ImageDescription]])
async def list_descriptions(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    batch_id: Optional[int] = None,
    echo_view: Optional[str] = None,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    descriptions = await image_description_service.list_descriptions(pool, batch_id=batch_id, echo_view=echo_view)
    return APIResponse(message="Image descriptions retrieved successfully", data=descriptions)

@router.get("/echo-views", response_model=APIResponse[List[str]])
async def echo_views(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    views = await image_description_service.echo_views(pool)
    return APIResponse(message="Echo views retrieved successfully", data=views)

@router.get("/question/{question_id}", response_model=APIResponse[List[ImageDescription]])
async def descriptions_for_question(
    *,
    question_id: int,
    usage_type: Optional[UsageTypeEnum] = None,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    descriptions = await image_description_service.for_question(
        pool, question_id=question_id, usage_type=usage_type.value if usage_type else None
    )
    return APIResponse(message="Image descriptions retrieved successfully", data=descriptions)

@router.delete("/question/{question_id}", response_model=APIResponse[dict])
async def delete_descriptions_for_question(
    *,
    question_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    deleted = await image_description_service.delete_for_question(pool, question_id=question_id, context=context)
    return APIResponse(message=f"Deleted {deleted} image descriptions", data={"deleted": deleted})

@router.get("/{description_id}", response_model=APIResponse[ImageDescription])
async def get_description(
    *,
    description_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    row = await image_description_service.get_or_404(pool, description_id)
    return APIResponse(message="Image description retrieved successfully", data=ImageDescription.model_validate(row))

@router.post("/", status_code=status.HTTP_201_CREATED, response_model=APIResponse[ImageDescription])
async def create_description(
    *,
    description_in: ImageDescriptionCreate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_permission(PermissionEnum.IMAGE_UPLOAD))
):
    description = await image_description_service.create(pool, description_in=description_in, context=context)
    return APIResponse(message="Image description created successfully", data=description)

@router.put("/{description_id}", response_model=APIResponse[ImageDescription])
async def update_description(
    *,
    description_id: int,
    update_in: ImageDescriptionUpdate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    description = await image_description_service.update(
        pool, description_id=description_id, update_in=update_in, context=context
    )
    return APIResponse(message="Image description updated successfully", data=description)

@router.delete("/{description_id}", response_model=APIResponse[None])
async def delete_description(
    *,
    description_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    await image_description_service.delete(pool, description_id=description_id, context=context)
    return APIResponse(message="Image description deleted successfully")
