from typing import List

from fastapi import APIRouter, Depends, status

from app.core.database import ResilientPool
from app.schemas.registration_token import RegistrationToken, RegistrationTokenCreate
from app.schemas.response import APIResponse
from app.schemas.user import PasswordReset, User as UserSchema, UserAdminCreate, UserAdminUpdate, UserContext
from app.services.user import user_service
from app.utils import deps

router = APIRouter(dependencies=[Depends(deps.require_admin)])

@router.get("/users", response_model=APIResponse[List[UserSchema]])
async def list_users(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    skip: int = 0,
    limit: int = 100
):
    users = await user_service.list_users(pool, skip=skip, limit=limit)
    return APIResponse(message="Users retrieved successfully", data=users)

@router.post("/users", status_code=status.HTTP_201_CREATED, response_model=APIResponse[UserSchema])
async def create_user(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    user_in: UserAdminCreate
):
    created = await user_service.create_user(pool, user_in=user_in)
    return APIResponse(message="User created successfully", data=created)

@router.put("/users/{user_id}", response_model=APIResponse[UserSchema])
async def update_user(
    *,
    user_id: int,
    update_in: UserAdminUpdate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_admin)
):
    updated = await user_service.update_user(pool, user_id=user_id, update_in=update_in, context=context)
    return APIResponse(message="User updated successfully", data=updated)

@router.delete("/users/{user_id}", response_model=APIResponse[UserSchema])
async def deactivate_user(
    *,
    user_id: int,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_admin)
):
    """Users are deactivated rather than removed, their content keeps its attribution."""
    deactivated = await user_service.deactivate_user(pool, user_id=user_id, context=context)
    return APIResponse(message="User deactivated successfully", data=deactivated)

@router.post("/users/{user_id}/reset-password", response_model=APIResponse[None])
async def reset_password(
    *,
    user_id: int,
    request: PasswordReset,
    pool: ResilientPool = Depends(deps.get_pool)
):
    await user_service.reset_password(pool, user_id=user_id, new_password=request.new_password)
    return APIResponse(message="Password reset successfully")

@router.post("/registration-tokens", status_code=status.HTTP_201_CREATED, response_model=APIResponse[RegistrationToken])
async def create_registration_token(
    *,
    token_in: RegistrationTokenCreate,
    pool: ResilientPool = Depends(deps.get_pool),
    context: UserContext = Depends(deps.require_admin)
):
    token = await user_service.create_registration_token(pool, token_in=token_in, context=context)
    return APIResponse(message="Registration token created successfully", data=token)

@router.get("/registration-tokens", response_model=APIResponse[List[RegistrationToken]])
async def list_registration_tokens(
    *,
    pool: ResilientPool = Depends(deps.get_pool)
):
    tokens = await user_service.list_registration_tokens(pool)
    return APIResponse(message="Registration tokens retrieved successfully", data=tokens)
