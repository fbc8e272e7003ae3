import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from sqlalchemy import MetaData, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql.expression import Executable

from app.schemas.health import PoolStatus

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")

TRANSIENT_SIGNATURES = (
    "timeout",
    "timed out",
    "connection terminated",
    "connection reset",
    "connection was closed",
    "server closed the connection",
    "etimedout",
    "econnreset",
)

MIGRATION_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS applied_migrations (
    name VARCHAR(255) PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""


class QueryResult:
    """Rows of a finished statement, materialized before the connection is released."""

    def __init__(self, rows: List[Dict[str, Any]], rowcount: int = 0):
        self.rows = rows
        self.rowcount = rowcount

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        row = self.first()
        if row is None:
            return None
        return next(iter(row.values()), None)

    def __len__(self) -> int:
        return len(self.rows)


class ResilientPool:
    """
    Bounded connection pool that hides transient database failures.

    Connection acquisition is retried with exponential backoff and verified
    with a liveness probe. Statements are retried with linear backoff when the
    failure looks transient; anything else propagates on the first attempt.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        max_connections: int = 20,
        connection_timeout: float = 10.0,
        idle_timeout: float = 30.0,
        query_timeout: float = 60.0,
        statement_timeout: float = 60.0,
        ssl: bool = False,
        max_retries: int = 3,
        base_delay: float = 1.0,
        query_attempts: int = 3,
        engine: Optional[AsyncEngine] = None,
    ):
        if engine is None and not url:
            raise ValueError("Either a database url or an engine is required")

        self.max_connections = max_connections
        self.connection_timeout = connection_timeout
        self.query_timeout = query_timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.query_attempts = query_attempts

        self.is_healthy = False
        self.retry_count = 0
        self._waiting = 0

        if engine is None:
            connect_args: Dict[str, Any] = {}
            if url.startswith("postgresql+asyncpg"):
                connect_args["server_settings"] = {
                    "statement_timeout": str(int(statement_timeout * 1000)),
                }
                if ssl:
                    connect_args["ssl"] = "require"
            engine = create_async_engine(
                url,
                pool_size=max_connections,
                max_overflow=0,
                pool_timeout=connection_timeout,
                pool_recycle=int(idle_timeout),
                connect_args=connect_args,
            )
        self.engine = engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @staticmethod
    def is_transient_error(exc: BaseException) -> bool:
        if isinstance(exc, (asyncio.TimeoutError, PoolTimeoutError, ConnectionError)):
            return True
        if isinstance(exc, DBAPIError) and exc.connection_invalidated:
            return True
        message = str(exc).lower()
        return any(signature in message for signature in TRANSIENT_SIGNATURES)

    async def _acquire(self) -> AsyncConnection:
        self._waiting += 1
        try:
            conn = await asyncio.wait_for(self.engine.connect(), timeout=self.connection_timeout)
        finally:
            self._waiting -= 1

        try:
            await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=self.connection_timeout)
        except Exception:
            await conn.close()
            raise
        return conn

    async def connect(self) -> AsyncConnection:
        """Acquire a verified connection; the caller must close it."""
        for attempt in range(self.max_retries + 1):
            try:
                conn = await self._acquire()
            except Exception as exc:
                self.retry_count += 1
                if attempt >= self.max_retries:
                    self.is_healthy = False
                    logger.error(f"Database connection failed after {self.max_retries + 1} attempts: {exc}")
                    raise
                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    f"Database connection attempt {attempt + 1} failed, retrying in {delay}s: {exc}"
                )
                await asyncio.sleep(delay)
            else:
                if not self.is_healthy:
                    logger.info("Database connection established")
                self.is_healthy = True
                self.retry_count = 0
                return conn

    async def _with_retries(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        for attempt in range(1, self.query_attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                if not self.is_transient_error(exc) or attempt >= self.query_attempts:
                    raise
                delay = self.base_delay * attempt
                logger.warning(
                    f"{label} attempt {attempt}/{self.query_attempts} failed with transient error, "
                    f"retrying in {delay}s: {exc}"
                )
                await asyncio.sleep(delay)

    async def query(
        self,
        statement: Union[str, Executable],
        params: Optional[Dict[str, Any]] = None,
    ) -> QueryResult:
        if isinstance(statement, str):
            statement = text(statement)

        async def _execute() -> QueryResult:
            conn = await self.connect()
            try:
                if params is None:
                    pending = conn.execute(statement)
                else:
                    pending = conn.execute(statement, params)
                result = await asyncio.wait_for(pending, timeout=self.query_timeout)
                rows = [dict(row) for row in result.mappings().all()] if result.returns_rows else []
                rowcount = result.rowcount if result.rowcount is not None else 0
                await conn.commit()
                return QueryResult(rows=rows, rowcount=rowcount)
            finally:
                await conn.close()

        return await self._with_retries(_execute, "Query")

    async def run_script(self, sql: str) -> None:
        """Execute a multi-statement SQL script on a single connection."""
        async def _execute() -> None:
            conn = await self.connect()
            try:
                raw = await conn.get_raw_connection()
                driver = raw.driver_connection
                if hasattr(driver, "executescript"):
                    await asyncio.wait_for(driver.executescript(sql), timeout=self.query_timeout)
                else:
                    await asyncio.wait_for(driver.execute(sql), timeout=self.query_timeout)
                await conn.commit()
            finally:
                await conn.close()

        await self._with_retries(_execute, "Script")

    async def run_sync(self, fn: Callable[..., T]) -> T:
        """Run a synchronous metadata callable (e.g. ``create_all``) on a pooled connection."""
        conn = await self.connect()
        try:
            outcome = await conn.run_sync(fn)
            await conn.commit()
            return outcome
        finally:
            await conn.close()

    def get_status(self) -> PoolStatus:
        pool = self.engine.pool
        checked_in = pool.checkedin() if hasattr(pool, "checkedin") else 0
        checked_out = pool.checkedout() if hasattr(pool, "checkedout") else 0
        return PoolStatus(
            healthy=self.is_healthy,
            total=checked_in + checked_out,
            idle=checked_in,
            waiting=self._waiting,
            retry_count=self.retry_count,
        )

    async def dispose(self) -> None:
        await self.engine.dispose()
        self.is_healthy = False
        logger.info("Database pool disposed")


async def apply_migrations(pool: ResilientPool, migrations_dir: str) -> List[str]:
    """Apply pending ``*.sql`` files in filename order, each at most once."""
    await pool.query(MIGRATION_LEDGER_DDL)

    if not os.path.isdir(migrations_dir):
        logger.info(f"Migrations directory {migrations_dir} not found, skipping migrations")
        return []

    result = await pool.query("SELECT name FROM applied_migrations")
    already_applied = {row["name"] for row in result.rows}

    applied = []
    for name in sorted(f for f in os.listdir(migrations_dir) if f.endswith(".sql")):
        if name in already_applied:
            continue
        with open(os.path.join(migrations_dir, name), encoding="utf-8") as handle:
            script = handle.read()
        try:
            await pool.run_script(script)
            await pool.query(
                "INSERT INTO applied_migrations (name) VALUES (:name)",
                {"name": name},
            )
        except Exception as exc:
            logger.error(f"Migration {name} failed, continuing with the next one: {exc}")
            continue
        logger.info(f"Applied migration {name}")
        applied.append(name)
    return applied


async def initialize_database(
    pool: ResilientPool,
    *,
    allow_schema_init: bool = False,
    migrations_dir: Optional[str] = None,
    metadata: Optional[MetaData] = None,
) -> List[str]:
    if allow_schema_init:
        logger.warning("ALLOW_SCHEMA_INIT is enabled, creating base schema")
        await pool.run_sync((metadata or Base.metadata).create_all)
    else:
        logger.info("Skipping base schema initialization (ALLOW_SCHEMA_INIT is not enabled)")

    if migrations_dir is None:
        return []
    return await apply_migrations(pool, migrations_dir)
