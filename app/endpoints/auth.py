from fastapi import APIRouter, Depends, status

from app.core.database import ResilientPool
from app.schemas.registration_token import RegisterWithToken, TokenValidation
from app.schemas.response import APIResponse
from app.schemas.token import LoginRequest, LoginResponse
from app.schemas.user import PasswordChange, User, UserContext, UserCreate, UserUpdate
from app.services.auth import auth_service
from app.utils import deps

router = APIRouter()

@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=APIResponse[LoginResponse])
async def register(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    user_in: UserCreate
):
    """Self registration; the new account has no elevated roles."""
    login_data = await auth_service.register(pool, user_in=user_in)
    return APIResponse(message="User registered successfully", data=login_data)

@router.post("/login", response_model=APIResponse[LoginResponse])
async def login(
    request: LoginRequest,
    pool: ResilientPool = Depends(deps.get_pool)
):
    login_data = await auth_service.login(pool, username=request.username, password=request.password)
    return APIResponse(message="Login successful", data=login_data)

@router.get("/profile", response_model=APIResponse[User])
async def get_profile(
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    return APIResponse(message="Profile retrieved successfully", data=context.user)

@router.put("/profile", response_model=APIResponse[User])
async def update_profile(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    update_in: UserUpdate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    updated = await auth_service.update_profile(pool, context=context, update_in=update_in)
    return APIResponse(message="Profile updated successfully", data=updated)

@router.post("/change-password", response_model=APIResponse[None])
async def change_password(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    request: PasswordChange,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    await auth_service.change_password(
        pool, context=context, current_password=request.current_password, new_password=request.new_password
    )
    return APIResponse(message="Password changed successfully")

@router.get("/verify", response_model=APIResponse[User])
async def verify_token(
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    """Confirm the bearer token is still valid."""
    return APIResponse(message="Token is valid", data=context.user)

@router.get("/registration-tokens/{token}/validate", response_model=APIResponse[TokenValidation])
async def validate_registration_token(
    *,
    token: str,
    pool: ResilientPool = Depends(deps.get_pool)
):
    validation = await auth_service.validate_registration_token(pool, token=token)
    return APIResponse(message="Registration token is valid", data=validation)

@router.post("/register-with-token", status_code=status.HTTP_201_CREATED, response_model=APIResponse[LoginResponse])
async def register_with_token(
    *,
    pool: ResilientPool = Depends(deps.get_pool),
    user_in: RegisterWithToken
):
    login_data = await auth_service.register_with_token(pool, user_in=user_in)
    return APIResponse(message="User registered successfully", data=login_data)
