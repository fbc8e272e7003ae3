import logging
from typing import List

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.database import ResilientPool
from app.core.security import get_password_hash
from app.crud.registration_token import registration_token as crud_registration_token
from app.crud.user import user as crud_user
from app.schemas.registration_token import RegistrationToken, RegistrationTokenCreate
from app.schemas.user import User as UserSchema, UserAdminCreate, UserAdminUpdate, UserContext
from app.services.auth import auth_service, unique_violation

logger = logging.getLogger(__name__)


def registration_url(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/register?token={token}"


class UserService:
    async def _get_or_404(self, pool: ResilientPool, user_id: int) -> dict:
        user = await crud_user.get(pool, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    async def list_users(self, pool: ResilientPool, *, skip: int = 0, limit: int = 100) -> List[UserSchema]:
        return [UserSchema.model_validate(u) for u in await crud_user.get_all(pool, skip=skip, limit=limit)]

    async def create_user(self, pool: ResilientPool, *, user_in: UserAdminCreate) -> UserSchema:
        data = user_in.model_dump()
        data["exam_category"] = data.get("exam_category") or settings.DEFAULT_EXAM_CATEGORY
        data["exam_type"] = data.get("exam_type") or settings.DEFAULT_EXAM_TYPE
        user = await auth_service.create_user(pool, data=data)
        logger.info(f"Admin created user {user['username']} (id={user['id']})")
        return UserSchema.model_validate(user)

    async def update_user(self, pool: ResilientPool, *, user_id: int, update_in: UserAdminUpdate, context: UserContext) -> UserSchema:
        await self._get_or_404(pool, user_id)
        data = update_in.model_dump(exclude_unset=True)
        if user_id == context.user.id and data.get("is_admin") is False:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove your own admin access")
        try:
            updated = await crud_user.update(pool, id=user_id, obj_in=data)
        except IntegrityError as e:
            raise unique_violation(e)
        return UserSchema.model_validate(updated)

    async def deactivate_user(self, pool: ResilientPool, *, user_id: int, context: UserContext) -> UserSchema:
        if user_id == context.user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")
        await self._get_or_404(pool, user_id)
        user = await crud_user.deactivate(pool, id=user_id)
        logger.info(f"User {user_id} deactivated by {context.user.username}")
        return UserSchema.model_validate(user)

    async def reset_password(self, pool: ResilientPool, *, user_id: int, new_password: str) -> None:
        await self._get_or_404(pool, user_id)
        await crud_user.update_password(pool, id=user_id, password_hash=get_password_hash(new_password))
        logger.info(f"Password reset for user {user_id}")

    async def create_registration_token(self, pool: ResilientPool, *, token_in: RegistrationTokenCreate, context: UserContext) -> RegistrationToken:
        row = await crud_registration_token.create_token(
            pool,
            role=token_in.role,
            created_by=context.user.id,
            expires_in_hours=token_in.expires_in_hours,
        )
        logger.info(f"Registration token for role {row['role']} created by {context.user.username}")
        return RegistrationToken(**row, registration_url=registration_url(row["token"]))

    async def list_registration_tokens(self, pool: ResilientPool) -> List[RegistrationToken]:
        rows = await crud_registration_token.get_active_tokens(pool)
        return [RegistrationToken(**row, registration_url=registration_url(row["token"])) for row in rows]


user_service = UserService()
