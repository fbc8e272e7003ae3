from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from sqlalchemy import delete, func, insert, select, update
from app.core.database import Base, ResilientPool

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

Row = Dict[str, Any]

class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """Core-statement CRUD over one table; every call goes through the resilient pool."""

    def __init__(self, model: Type[ModelType]):
        self.model = model
        self.table = model.__table__

    def _column_values(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in data.items() if k in self.table.c}

    async def get(self, pool: ResilientPool, id: Any) -> Optional[Row]:
        result = await pool.query(select(self.table).where(self.table.c.id == id))
        return result.first()

    async def get_multi(
        self, pool: ResilientPool, *, skip: int = 0, limit: int = 100
    ) -> List[Row]:
        stmt = select(self.table).order_by(self.table.c.id).offset(skip).limit(limit)
        return (await pool.query(stmt)).rows

    async def count(self, pool: ResilientPool, *criteria) -> int:
        stmt = select(func.count()).select_from(self.table)
        if criteria:
            stmt = stmt.where(*criteria)
        return (await pool.query(stmt)).scalar() or 0

    async def create(
        self, pool: ResilientPool, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]
    ) -> Row:
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        stmt = (
            insert(self.table)
            .values(**self._column_values(obj_in_data))
            .returning(*self.table.c)
        )
        return (await pool.query(stmt)).first()

    async def update(
        self, pool: ResilientPool, *, id: Any, obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> Optional[Row]:
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        values = self._column_values(update_data)
        values.pop("id", None)
        if not values:
            return await self.get(pool, id)
        stmt = (
            update(self.table)
            .where(self.table.c.id == id)
            .values(**values)
            .returning(*self.table.c)
        )
        return (await pool.query(stmt)).first()

    async def delete(self, pool: ResilientPool, *, id: Any) -> Optional[Row]:
        stmt = delete(self.table).where(self.table.c.id == id).returning(*self.table.c)
        return (await pool.query(stmt)).first()
