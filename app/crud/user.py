from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update

from app.core.database import ResilientPool
from app.crud.base import CRUDBase, Row
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate

users = User.__table__

class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):
    async def get_by_username(self, pool: ResilientPool, *, username: str, active_only: bool = True) -> Optional[Row]:
        stmt = select(users).where(users.c.username == username)
        if active_only:
            stmt = stmt.where(users.c.is_active.is_(True))
        return (await pool.query(stmt)).first()

    async def get_by_email(self, pool: ResilientPool, *, email: str, active_only: bool = True) -> Optional[Row]:
        stmt = select(users).where(users.c.email == email)
        if active_only:
            stmt = stmt.where(users.c.is_active.is_(True))
        return (await pool.query(stmt)).first()

    async def get_by_username_or_email(self, pool: ResilientPool, *, login: str) -> Optional[Row]:
        """Login accepts either identifier; inactive users are never returned."""
        return await self.get_by_username(pool, username=login) or await self.get_by_email(pool, email=login)

    async def get_all(self, pool: ResilientPool, *, skip: int = 0, limit: int = 100) -> List[Row]:
        stmt = select(users).order_by(users.c.created_at.desc(), users.c.id.desc()).offset(skip).limit(limit)
        return (await pool.query(stmt)).rows

    async def update_last_login(self, pool: ResilientPool, *, id: int) -> None:
        await pool.query(
            update(users).where(users.c.id == id).values(last_login=datetime.now(timezone.utc))
        )

    async def update_password(self, pool: ResilientPool, *, id: int, password_hash: str) -> Optional[Row]:
        return await self.update(pool, id=id, obj_in={"password_hash": password_hash})

    async def deactivate(self, pool: ResilientPool, *, id: int) -> Optional[Row]:
        return await self.update(pool, id=id, obj_in={"is_active": False})

user = CRUDUser(User)
