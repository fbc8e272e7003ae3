import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.logging import configure_logging
from app.core.database import Base, ResilientPool, initialize_database
from app.endpoints import admin, auth, health, image, image_description, question, review
from app.middleware.exceptions import global_exception_handler, http_exception_handler, validation_exception_handler
from app.middleware.logging import RequestLoggingMiddleware
from app.core.scheduler import start_scheduler, stop_scheduler
from app.services.auth import auth_service
# registers every table on Base.metadata
from app.models import image as image_model, image_description as image_description_model  # noqa: F401
from app.models import question as question_model, registration_token as registration_token_model  # noqa: F401
from app.models import upload_batch as upload_batch_model, user as user_model  # noqa: F401

configure_logging()
logger = logging.getLogger("app")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
# review routes before /questions/{question_id}
app.include_router(review.router, prefix="/questions/review", tags=["Review"])
app.include_router(question.router, prefix="/questions", tags=["Questions"])
app.include_router(image.router, prefix="/images", tags=["Images"])
app.include_router(image_description.router, prefix="/image-descriptions", tags=["Image Descriptions"])


def create_pool() -> ResilientPool:
    return ResilientPool(
        settings.DATABASE_URL,
        max_connections=settings.DATABASE_POOL_MAX,
        connection_timeout=settings.DATABASE_CONNECTION_TIMEOUT,
        idle_timeout=settings.DATABASE_IDLE_TIMEOUT,
        query_timeout=settings.DATABASE_QUERY_TIMEOUT,
        statement_timeout=settings.DATABASE_STATEMENT_TIMEOUT,
        ssl=settings.DATABASE_SSL,
        max_retries=settings.DATABASE_CONNECT_RETRIES,
        base_delay=settings.DATABASE_RETRY_BASE_DELAY,
        query_attempts=settings.DATABASE_QUERY_ATTEMPTS,
    )


@app.on_event("startup")
async def startup_event():
    pool = create_pool()
    app.state.pool = pool
    try:
        await initialize_database(
            pool,
            allow_schema_init=settings.ALLOW_SCHEMA_INIT,
            migrations_dir=settings.MIGRATIONS_DIR,
            metadata=Base.metadata,
        )
    except Exception as e:
        # keep serving; /health/database reports the outage
        logger.error(f"Database initialization failed: {e}")
    try:
        await auth_service.ensure_bootstrap_admin(pool)
    except Exception as e:
        logger.error(f"Bootstrap admin check failed: {e}")
    start_scheduler(pool)


@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()
    await app.state.pool.dispose()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
