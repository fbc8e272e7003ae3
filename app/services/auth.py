import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.constants import RoleEnum
from app.core.database import ResilientPool
from app.core.security import create_access_token, get_password_hash, verify_password
from app.crud.registration_token import registration_token as crud_registration_token
from app.crud.user import user as crud_user
from app.schemas.registration_token import RegisterWithToken, TokenValidation
from app.schemas.token import LoginResponse, Token
from app.schemas.user import User as UserSchema, UserContext, UserCreate, UserUpdate

logger = logging.getLogger(__name__)


def unique_violation(exc: IntegrityError) -> HTTPException:
    """Translate a users unique-constraint violation into a 409 naming the field."""
    message = str(exc.orig if exc.orig is not None else exc).lower()
    if "username" in message:
        detail = "Username already exists"
    elif "email" in message:
        detail = "Email already exists"
    else:
        detail = "User already exists"
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


class AuthService:
    def _issue_token(self, user: dict) -> Token:
        access_token = create_access_token(data={"user_id": user["id"]}, subject=user["username"])
        return Token(access_token=access_token, token_type="bearer")

    async def _ensure_available(self, pool: ResilientPool, *, username: str, email: str) -> None:
        if await crud_user.get_by_username(pool, username=username, active_only=False):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
        if await crud_user.get_by_email(pool, email=email, active_only=False):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    async def create_user(self, pool: ResilientPool, *, data: dict) -> dict:
        await self._ensure_available(pool, username=data["username"], email=data["email"])
        values = dict(data)
        values["password_hash"] = get_password_hash(values.pop("password"))
        try:
            return await crud_user.create(pool, obj_in=values)
        except IntegrityError as e:
            raise unique_violation(e)

    async def register(self, pool: ResilientPool, *, user_in: UserCreate, is_image_contributor: bool = False, is_reviewer: bool = False) -> LoginResponse:
        data = user_in.model_dump(exclude={"token"})
        data.update(is_image_contributor=is_image_contributor, is_reviewer=is_reviewer, is_active=True)
        user = await self.create_user(pool, data=data)
        logger.info(f"Registered user {user['username']} (id={user['id']})")
        return LoginResponse(token=self._issue_token(user), user=UserSchema.model_validate(user))

    async def login(self, pool: ResilientPool, *, username: str, password: str) -> LoginResponse:
        user = await crud_user.get_by_username_or_email(pool, login=username)
        if not user or not verify_password(password, user["password_hash"]):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
            )

        await crud_user.update_last_login(pool, id=user["id"])
        user = await crud_user.get(pool, user["id"])
        return LoginResponse(token=self._issue_token(user), user=UserSchema.model_validate(user))

    async def update_profile(self, pool: ResilientPool, *, context: UserContext, update_in: UserUpdate) -> UserSchema:
        data = update_in.model_dump(exclude_unset=True)
        if data.get("email") and data["email"] != context.user.email:
            existing = await crud_user.get_by_email(pool, email=data["email"], active_only=False)
            if existing and existing["id"] != context.user.id:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
        try:
            updated = await crud_user.update(pool, id=context.user.id, obj_in=data)
        except IntegrityError as e:
            raise unique_violation(e)
        return UserSchema.model_validate(updated)

    async def change_password(self, pool: ResilientPool, *, context: UserContext, current_password: str, new_password: str) -> None:
        user = await crud_user.get(pool, context.user.id)
        if not user or not verify_password(current_password, user["password_hash"]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
        await crud_user.update_password(pool, id=user["id"], password_hash=get_password_hash(new_password))
        logger.info(f"User {user['username']} changed their password")

    async def validate_registration_token(self, pool: ResilientPool, *, token: str) -> TokenValidation:
        row = await crud_registration_token.find_by_token(pool, token=token)
        if not row:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired registration token")
        return TokenValidation(valid=True, role=row["role"], expires_at=row["expires_at"])

    async def register_with_token(self, pool: ResilientPool, *, user_in: RegisterWithToken) -> LoginResponse:
        token_row = await crud_registration_token.find_by_token(pool, token=user_in.token)
        if not token_row:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired registration token")

        role = token_row["role"]
        response = await self.register(
            pool,
            user_in=user_in,
            is_image_contributor=role == RoleEnum.IMAGE_CONTRIBUTOR.value,
            is_reviewer=role == RoleEnum.REVIEWER.value,
        )
        marked = await crud_registration_token.mark_as_used(pool, token=user_in.token, user_id=response.user.id)
        if not marked:
            # consumed concurrently; the account stays but gets no role flags
            logger.warning(f"Registration token used concurrently by user {response.user.id}")
            await crud_user.update(pool, id=response.user.id, obj_in={"is_image_contributor": False, "is_reviewer": False})
            user = await crud_user.get(pool, response.user.id)
            response = LoginResponse(token=response.token, user=UserSchema.model_validate(user))
        return response

    async def ensure_bootstrap_admin(self, pool: ResilientPool) -> Optional[dict]:
        """Create the configured admin account on first start."""
        username = settings.BOOTSTRAP_ADMIN_USERNAME
        if not (username and settings.BOOTSTRAP_ADMIN_EMAIL and settings.BOOTSTRAP_ADMIN_PASSWORD):
            return None
        existing = await crud_user.get_by_username(pool, username=username, active_only=False)
        if existing:
            return existing
        admin = await self.create_user(pool, data={
            "username": username,
            "email": settings.BOOTSTRAP_ADMIN_EMAIL,
            "password": settings.BOOTSTRAP_ADMIN_PASSWORD,
            "is_admin": True,
            "is_reviewer": True,
            "is_active": True,
        })
        logger.warning(f"Created bootstrap admin account {username}")
        return admin


auth_service = AuthService()
