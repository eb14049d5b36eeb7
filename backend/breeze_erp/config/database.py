"""
Engines, sessions and health probes for the ERP store.

PostgreSQL in production (psycopg for sync work, asyncpg for requests);
a shared SQLite file when ``TESTING=true`` so the sync seeding in the test
suite and async request handlers see the same rows.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Tuple

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from ..models.database import Base


logger = logging.getLogger(__name__)

SLOW_QUERY_SECONDS = 0.1
SQLITE_TEST_FILE = "./test.db"

_ASYNC_DRIVERS = (
    ("postgresql+psycopg://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
    ("sqlite:///", "sqlite+aiosqlite:///"),
)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def resolve_urls() -> Tuple[str, str]:
    """Return ``(sync_url, async_url)`` from the environment."""
    if os.getenv("TESTING", "false").lower() == "true":
        return f"sqlite:///{SQLITE_TEST_FILE}", f"sqlite+aiosqlite:///{SQLITE_TEST_FILE}"

    sync_url = os.getenv("DATABASE_URL")
    if not sync_url:
        sync_url = "postgresql+psycopg://{user}:{pw}@{host}:{port}/{name}".format(
            user=os.getenv("DB_USER", "postgres"),
            pw=os.getenv("DB_PASSWORD", "postgres"),
            host=os.getenv("DB_HOST", "localhost"),
            port=os.getenv("DB_PORT", "5432"),
            name=os.getenv("DB_NAME", "breeze_erp"),
        )

    async_url = os.getenv("ASYNC_DATABASE_URL")
    if not async_url:
        async_url = sync_url
        for prefix, async_prefix in _ASYNC_DRIVERS:
            if sync_url.startswith(prefix):
                async_url = async_prefix + sync_url[len(prefix):]
                break
    return sync_url, async_url


DATABASE_URL, ASYNC_DATABASE_URL = resolve_urls()
IS_SQLITE = DATABASE_URL.startswith("sqlite")
ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

POOL_SETTINGS: Dict[str, int] = {
    "pool_size": _env_int("DATABASE_POOL_SIZE", 10),
    "max_overflow": _env_int("DATABASE_MAX_OVERFLOW", 20),
    "pool_timeout": _env_int("DATABASE_POOL_TIMEOUT", 30),
    "pool_recycle": _env_int("DATABASE_POOL_RECYCLE", 3600),
}

if IS_SQLITE:
    engine = create_engine(DATABASE_URL, echo=ECHO, connect_args={"check_same_thread": False})
    # Test event loops come and go between tests; never pool aiosqlite connections
    async_engine = create_async_engine(
        ASYNC_DATABASE_URL, echo=ECHO, poolclass=NullPool,
        connect_args={"check_same_thread": False, "timeout": 15},
    )
else:
    engine = create_engine(
        DATABASE_URL, echo=ECHO, **POOL_SETTINGS,
        connect_args={"application_name": "breeze_erp", "options": "-c timezone=UTC"},
    )
    async_engine = create_async_engine(ASYNC_DATABASE_URL, echo=ECHO, **POOL_SETTINGS)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
)


@event.listens_for(engine, "before_cursor_execute")
def _mark_query_start(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _log_slow_query(conn, cursor, statement, parameters, context, executemany):
    elapsed = time.perf_counter() - context._query_start_time
    if elapsed > SLOW_QUERY_SECONDS:
        logger.warning("Slow query detected: %.3fs - %s...", elapsed, statement[:100])


def create_database_tables():
    """Create every table from the models (tests and first-run bootstrap)."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def drop_database_tables():
    Base.metadata.drop_all(bind=engine)
    logger.info("Database tables dropped")


@asynccontextmanager
async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Session scope for code outside a request (startup seeding, scripts).

    Commits on success and rolls back on any exception before re-raising.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_async_db_dependency():
    """FastAPI dependency yielding one session per request; services commit."""
    async with AsyncSessionLocal() as session:
        yield session


async def check_async_database_connection() -> bool:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Database connection check failed: %s", exc)
        return False


def _pool_stats(pool) -> dict:
    # NullPool exposes none of the counters
    stats = {}
    for name in ("size", "checkedin", "checkedout", "overflow"):
        fn = getattr(pool, name, None)
        if callable(fn):
            stats[name] = fn()
    return stats


async def async_database_health_check() -> dict:
    """Connectivity plus pool counters for the readiness probe."""
    started = time.perf_counter()
    connection_ok = await check_async_database_connection()
    return {
        "status": "healthy" if connection_ok else "unhealthy",
        "connection": connection_ok,
        "dialect": async_engine.dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "pool_stats": _pool_stats(async_engine.pool),
    }
