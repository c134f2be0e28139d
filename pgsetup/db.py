from __future__ import annotations

import asyncio
import logging
from typing import Any
import uuid

from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pgsetup.config import Settings
from pgsetup.logging_config import ContextLogger
from pgsetup.models import PrimaryDescriptor
from pgsetup.services.errors import QueryError

logger = logging.getLogger(__name__)


def database_url(primary: PrimaryDescriptor, settings: Settings) -> URL:
    return URL.create(
        "postgresql+asyncpg",
        username=settings.admin_user,
        host=primary.address,
        port=primary.port,
        database=settings.database,
    )


def create_pool(primary: PrimaryDescriptor, settings: Settings) -> AsyncEngine:
    """Build a connection pool bound to the given primary.

    Connections are opened lazily, so the target database does not have to
    exist yet when the pool is created. Every statement commits on its own.
    """
    connect_args: dict[str, Any] = {"timeout": settings.pool.connect_timeout}
    if settings.pool.query_timeout is not None:
        connect_args["command_timeout"] = settings.pool.query_timeout
    logger.info(
        "Creating connection pool for primary=%s database=%s size=%s",
        primary,
        settings.database,
        settings.pool.max_connections,
    )
    return create_async_engine(
        database_url(primary, settings),
        echo=False,
        pool_size=settings.pool.max_connections,
        max_overflow=0,
        pool_pre_ping=True,
        isolation_level="AUTOCOMMIT",
        connect_args=connect_args,
    )


class QueryExecutor:
    """Runs single SQL statements on pooled connections.

    Each call checks out one connection, tags it with a fresh request id and
    returns it to the pool once the statement has settled, whatever the
    outcome.
    """

    def __init__(self, engine: AsyncEngine, *, log: ContextLogger | logging.LoggerAdapter | None = None) -> None:
        self._engine = engine
        self._log = log or ContextLogger(logger, {})

    async def query(self, sql: str) -> list[dict[str, Any]]:
        req_id = str(uuid.uuid4())
        self._log.info("Running postgres query req_id=%s sql=%r", req_id, sql)
        try:
            async with self._engine.connect() as conn:
                conn = await conn.execution_options(logging_token=req_id)
                result = await conn.exec_driver_sql(sql)
                rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            self._log.warning("Postgres query failed req_id=%s sql=%r: %s", req_id, sql, exc)
            raise QueryError("query failed", sql=sql, req_id=req_id) from exc
        self._log.debug("Postgres query finished req_id=%s rows=%s", req_id, len(rows))
        return rows

    async def close(self) -> None:
        await self._engine.dispose()
