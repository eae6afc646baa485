"""Database configuration and setup for GameVault.

Handles SQLite async database setup with proper concurrency handling:
- WAL mode so readers are not blocked by the single writer
- Retry logic for database locks
- Session factory for the library store
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from gamevault.core.metrics import (
    db_lock_errors_total,
    db_retries_failed_total,
    db_retries_succeeded_total,
    db_retry_attempts_total,
    db_retry_duration_seconds,
)

logger = structlog.get_logger("gamevault.database")

T = TypeVar("T")


def create_database_engine(
    database_file: Path,
    echo: bool = False,
) -> AsyncEngine:
    """Create and configure the database engine for async SQLite.

    Args:
        database_file: Path to the SQLite database file.
        echo: If True, log all SQL statements (useful for debugging).

    Returns:
        Configured AsyncEngine instance.
    """
    database_url = f"sqlite+aiosqlite:///{database_file}"

    engine = create_async_engine(
        database_url,
        echo=echo,
        # Wait for locks to be released instead of failing immediately
        connect_args={"timeout": 30.0},
        pool_pre_ping=True,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        """Enable WAL mode and foreign keys on every new connection."""
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    logger.info(
        "Database engine created",
        database_file=str(database_file),
        echo=echo,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[SQLModelAsyncSession]:
    """Create a session factory for database sessions.

    expire_on_commit=False keeps returned entries readable after the
    transaction that loaded them has closed.
    """
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
    )


async def init_database(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Register table metadata before create_all
    from gamevault.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    logger.info("Database schema ready")


async def retry_db_operation(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 5,
    retry_delay: float = 0.1,
    operation_type: str = "unknown",
) -> T:
    """Retry a database operation on SQLite lock errors with exponential backoff.

    The operation must be a zero-argument callable returning a fresh awaitable,
    and must open (and roll back on failure) its own transaction so that a
    retry starts from a clean state.

    Args:
        operation: Async callable to execute.
        max_retries: Maximum number of attempts (default: 5).
        retry_delay: Initial delay between retries in seconds; doubles each retry.
        operation_type: Label for metrics tracking ("upsert", "commit_match", ...).

    Returns:
        Result of the operation.

    Raises:
        OperationalError: If the error is not a lock error or retries are exhausted.
        Any other exception raised by the operation.

    Example:
        ```python
        await retry_db_operation(
            lambda: self._commit_match(entry_id, result),
            operation_type="commit_match",
        )
        ```
    """
    start_time = time.time()

    for attempt in range(max_retries):
        try:
            result = await operation()
        except OperationalError as exc:
            if "locked" in str(exc).lower() and attempt < max_retries - 1:
                db_lock_errors_total.inc()
                db_retry_attempts_total.labels(operation_type=operation_type).inc()

                logger.debug(
                    "Database lock detected, retrying",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    operation_type=operation_type,
                    error=str(exc)[:100],
                )

                await asyncio.sleep(retry_delay * (2**attempt))
                continue

            if attempt > 0:
                db_retries_failed_total.labels(operation_type=operation_type).inc()
                db_retry_duration_seconds.labels(operation_type=operation_type).observe(
                    time.time() - start_time
                )

            logger.error(
                "Database operation failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                operation_type=operation_type,
                error=str(exc)[:200],
            )
            raise

        if attempt > 0:
            db_retries_succeeded_total.labels(operation_type=operation_type).inc()
            db_retry_duration_seconds.labels(operation_type=operation_type).observe(
                time.time() - start_time
            )
        return result

    # Only reachable with max_retries <= 0
    raise ValueError(f"max_retries must be positive, got {max_retries}")
