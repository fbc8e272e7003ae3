from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.database import ResilientPool
from app.schemas.health import DatabaseHealth
from app.utils import deps

router = APIRouter()

@router.get("/health")
async def health_check():
    return {"status": "healthy"}

@router.get("/health/database", response_model=DatabaseHealth)
async def database_health(
    *,
    pool: ResilientPool = Depends(deps.get_pool)
):
    """Probe the database; 503 while the pool cannot reach it."""
    error = None
    try:
        await pool.query("SELECT 1")
    except Exception as e:
        error = str(e)

    status_snapshot = pool.get_status()
    body = DatabaseHealth(
        status="healthy" if status_snapshot.healthy and error is None else "unhealthy",
        database=status_snapshot,
        error=error,
    )
    if body.status == "healthy":
        return body
    return JSONResponse(status_code=503, content=body.model_dump())
