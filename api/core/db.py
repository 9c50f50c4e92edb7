"""
Async database access helpers (raw SQL) using asyncpg.

The pool is opened by the FastAPI lifespan hook (see `api/main.py`) and shared
by every feature repository.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
- jsonb columns are encoded/decoded as Python objects (see `_init_connection`).
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

_pool: asyncpg.Pool | None = None


def _sanitize_database_url(url: str) -> str:
    # Supabase connection strings carry sslmode, which asyncpg rejects as a DSN param.
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return None
    _pool = await asyncpg.create_pool(
        dsn=database_url(),
        min_size=1,
        max_size=10,
        command_timeout=30,
        init=_init_connection,
    )


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


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    row = await pool().fetchrow(sql, *args)
    return dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    rows = await pool().fetch(sql, *args)
    return [dict(r) for r in rows]


async def fetch_val(sql: str, *args: Any) -> Any:
    """
    Run a query and return the first column of the first row.
    """
    return await pool().fetchval(sql, *args)


async def execute(sql: str, *args: Any) -> str:
    """
    Run a statement (INSERT/UPDATE/DELETE/DDL) and return asyncpg's status tag.
    """
    return await pool().execute(sql, *args)


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Acquire a connection and open a transaction on it.

    Repository code that must write several rows atomically takes the yielded
    connection and runs its statements on it directly.
    """
    async with pool().acquire() as conn:
        async with conn.transaction():
            yield conn
