from pydantic import BaseModel
from typing import Optional


class PoolStatus(BaseModel):
    """Point-in-time snapshot of the connection pool."""
    healthy: bool
    total: int
    idle: int
    waiting: int
    retry_count: int


class DatabaseHealth(BaseModel):
    status: str
    database: PoolStatus
    error: Optional[str] = None
