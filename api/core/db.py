"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
- json/jsonb values are passed as text (`json_arg`) and cast in SQL: $1::jsonb
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from .settings import env_float, env_int

logger = logging.getLogger(__name__)

APPLICATION_NAME = "zencap-api"

_pool: asyncpg.Pool | None = None


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


def json_arg(value: Any) -> str | None:
    """
    asyncpg does not encode Python dicts for json/jsonb parameters.
    """
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=True, default=str)

async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return None
    _pool = await asyncpg.create_pool(
        dsn=database_url(),
        min_size=env_int("DB_POOL_MIN_SIZE", 1),
        max_size=env_int("DB_POOL_MAX_SIZE", 5),
        command_timeout=env_float("DB_COMMAND_TIMEOUT_S", 30.0),
        server_settings={"application_name": APPLICATION_NAME},
    )
    logger.info("db_pool_ready application_name=%s", APPLICATION_NAME)


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


def _statement_label(sql: str) -> str:
    return " ".join(sql.split())[:120]


@asynccontextmanager
async def _timed(sql: str) -> AsyncIterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if elapsed_ms >= env_int("DB_SLOW_QUERY_MS", 500):
            logger.warning("db_slow_query ms=%s sql=%r", elapsed_ms, _statement_label(sql))


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    async with _timed(sql):
        row = await pool().fetchrow(sql, *args)
    return dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    async with _timed(sql):
        rows = await pool().fetch(sql, *args)
    return [dict(r) for r in rows]


async def fetch_val(sql: str, *args: Any) -> Any:
    """
    First column of the first row, e.g. COUNT(*) or RETURNING id.
    """
    async with _timed(sql):
        return await pool().fetchval(sql, *args)


async def execute(sql: str, *args: Any) -> str:
    """
    Run a statement and return asyncpg's status tag (e.g. "UPDATE 1").
    """
    async with _timed(sql):
        return await pool().execute(sql, *args)


def affected_rows(status_tag: str) -> int:
    """
    Row count from a status tag: "UPDATE 3" -> 3, "INSERT 0 1" -> 1.
    """
    last = (status_tag or "").rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Acquire a connection and run the block inside a single transaction.
    """
    async with pool().acquire() as conn:
        async with conn.transaction():
            yield conn


async def ping() -> None:
    await fetch_val("SELECT 1")
