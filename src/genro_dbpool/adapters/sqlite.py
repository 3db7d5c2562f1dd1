# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite async driver using aiosqlite with per-lease connections."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import aiosqlite

from ..results import FieldInfo, MutationResult, PoolStats, QueryResult
from .base import DbDriver

if TYPE_CHECKING:
    from ..config import ConnectionOptions


class SqlitePool:
    """Connection slots for one SQLite file.

    SQLite has no server side pool: each acquire() opens a connection and
    release() closes it. The semaphore caps how many are open at once.
    """

    def __init__(self, path: str, limit: int, timeout: float, extra: dict[str, Any]):
        self.path = path
        self.limit = limit
        self.timeout = timeout
        self.extra = extra
        self.active: set[aiosqlite.Connection] = set()
        self.slots = asyncio.Semaphore(limit)


class SqliteDriver(DbDriver):
    """SQLite driver with per-lease connections.

    Connections are opened with isolation_level=None (autocommit), begin()
    issues an explicit BEGIN. The database option is the file path; an
    in-memory database is private to each connection.

    Escaping uses SQLite's own quote() and printf('%w') functions, evaluated
    on a private in-memory connection.
    """

    name = "sqlite"

    _quoter: sqlite3.Connection | None = None
    _quoter_lock = threading.Lock()

    async def open_pool(self, options: ConnectionOptions) -> SqlitePool:
        return SqlitePool(
            options.database or ":memory:",
            options.connection_limit,
            options.timeout_seconds,
            dict(options.extra),
        )

    async def close_pool(self, pool: SqlitePool) -> None:
        """Close connections still open on the pool."""
        for conn in list(pool.active):
            await self.release(pool, conn)

    def pool_stats(self, pool: SqlitePool) -> PoolStats:
        return PoolStats(size=len(pool.active), limit=pool.limit, free=0)

    async def acquire(self, pool: SqlitePool) -> aiosqlite.Connection:
        """Wait for a free slot, then open a new connection."""
        await pool.slots.acquire()
        try:
            conn = await aiosqlite.connect(
                pool.path, timeout=pool.timeout, isolation_level=None, **pool.extra
            )
        except BaseException:
            pool.slots.release()
            raise
        pool.active.add(conn)
        return conn

    async def release(self, pool: SqlitePool, conn: aiosqlite.Connection) -> None:
        """Close connection and free its slot."""
        if conn not in pool.active:
            return
        pool.active.discard(conn)
        try:
            await conn.close()
        finally:
            pool.slots.release()

    async def execute(self, conn: aiosqlite.Connection, sql: str) -> QueryResult:
        """Execute SQL, return rows with fields or a MutationResult."""
        async with conn.execute(sql) as cursor:
            if cursor.description is None:
                return QueryResult(MutationResult(cursor.rowcount, cursor.lastrowid), None)
            rows = await cursor.fetchall()
            cols = [c[0] for c in cursor.description]
            fields = [FieldInfo(name) for name in cols]
            return QueryResult([dict(zip(cols, row, strict=True)) for row in rows], fields)

    async def begin(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("BEGIN")

    async def commit(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("COMMIT")

    async def rollback(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("ROLLBACK")

    def escape_literal(self, value: Any) -> str:
        """Escape value with SQLite quote(): NULL, numbers, 'text', X'blob'.

        Dates and times are rendered as ISO strings first, Decimals as
        plain numbers. Lists, tuples and sets become a parenthesized list,
        like MySQL's. Text containing NUL is sent as a blob cast to TEXT,
        since quote() stops at the first NUL.
        """
        if isinstance(value, datetime):
            value = value.isoformat(" ")
        elif isinstance(value, (date, time)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            if not value.is_finite():
                raise ValueError(f"Cannot render {value} as a SQLite literal")
            return format(value, "f")
        elif isinstance(value, (list, tuple, set, frozenset)):
            return "(" + ",".join(self.escape_literal(item) for item in value) + ")"

        if isinstance(value, str) and "\x00" in value:
            return f"CAST(X'{value.encode('utf-8').hex().upper()}' AS TEXT)"
        return self._evaluate("SELECT quote(?)", value)

    def quote_identifier(self, name: str) -> str:
        return self._evaluate("""SELECT '"' || printf('%w', ?) || '"'""", name)

    @classmethod
    def _evaluate(cls, sql: str, value: Any) -> str:
        """Run a one-value SELECT on the shared in-memory quoting connection."""
        with cls._quoter_lock:
            if cls._quoter is None:
                cls._quoter = sqlite3.connect(":memory:", check_same_thread=False)
            return cls._quoter.execute(sql, (value,)).fetchone()[0]
