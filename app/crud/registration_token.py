import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, select, update

from app.core.config import settings
from app.core.database import ResilientPool
from app.crud.base import CRUDBase, Row
from app.models.registration_token import RegistrationToken
from app.models.user import User
from app.schemas.registration_token import RegistrationTokenCreate

tokens = RegistrationToken.__table__
users = User.__table__

class CRUDRegistrationToken(CRUDBase[RegistrationToken, RegistrationTokenCreate, RegistrationTokenCreate]):
    async def create_token(
        self,
        pool: ResilientPool,
        *,
        role: str,
        created_by: int,
        expires_in_hours: Optional[int] = None,
    ) -> Row:
        hours = expires_in_hours or settings.REGISTRATION_TOKEN_EXPIRE_HOURS
        return await self.create(pool, obj_in={
            "token": secrets.token_hex(32),
            "role": role,
            "created_by": created_by,
            "expires_at": datetime.now(timezone.utc) + timedelta(hours=hours),
            "used": False,
        })

    async def find_by_token(self, pool: ResilientPool, *, token: str) -> Optional[Row]:
        """An unused, unexpired token."""
        stmt = select(tokens).where(
            tokens.c.token == token,
            tokens.c.used.is_(False),
            tokens.c.expires_at > datetime.now(timezone.utc),
        )
        return (await pool.query(stmt)).first()

    async def mark_as_used(self, pool: ResilientPool, *, token: str, user_id: int) -> Optional[Row]:
        stmt = (
            update(tokens)
            .where(tokens.c.token == token, tokens.c.used.is_(False))
            .values(used=True, used_by=user_id, used_at=datetime.now(timezone.utc))
            .returning(*tokens.c)
        )
        return (await pool.query(stmt)).first()

    async def get_active_tokens(self, pool: ResilientPool, *, created_by: Optional[int] = None) -> List[Row]:
        stmt = (
            select(tokens, users.c.username.label("used_by_username"))
            .select_from(tokens.outerjoin(users, users.c.id == tokens.c.used_by))
            .order_by(tokens.c.created_at.desc(), tokens.c.id.desc())
        )
        if created_by is not None:
            stmt = stmt.where(tokens.c.created_by == created_by)
        return (await pool.query(stmt)).rows

    async def delete_expired(self, pool: ResilientPool) -> int:
        stmt = delete(tokens).where(
            tokens.c.used.is_(False),
            tokens.c.expires_at < datetime.now(timezone.utc),
        )
        return (await pool.query(stmt)).rowcount

registration_token = CRUDRegistrationToken(RegistrationToken)
