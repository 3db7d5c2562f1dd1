# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PostgreSQL async driver using psycopg3 with connection pooling.

Pool connections run in autocommit mode; transactions are explicit
BEGIN/COMMIT/ROLLBACK on a leased connection.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from ..results import FieldInfo, MutationResult, PoolStats, QueryResult
from .base import DbDriver

if TYPE_CHECKING:
    from ..config import ConnectionOptions


class PostgresDriver(DbDriver):
    """PostgreSQL driver with psycopg_pool connection pooling.

    Literals and identifiers are rendered by psycopg.sql (Literal,
    Identifier). Rows come back as dicts via the dict_row factory.
    """

    name = "postgresql"
    default_port = 5432

    def __init__(self):
        # Verify psycopg is available at init time
        try:
            import psycopg  # noqa: F401
            import psycopg_pool  # noqa: F401
        except ImportError as e:
            raise ImportError(
                "PostgreSQL support requires psycopg. "
                "Install with: pip install genro-dbpool[postgresql]"
            ) from e

    def _conninfo(self, options: ConnectionOptions) -> str:
        from psycopg.conninfo import make_conninfo

        params: dict[str, Any] = {
            "host": options.host or "127.0.0.1",
            "port": options.port or self.default_port,
            "dbname": options.database,
            "user": options.user,
            "password": options.password,
            "client_encoding": "UTF8" if options.charset.lower().startswith("utf8") else options.charset,
            "connect_timeout": max(1, int(options.timeout_seconds)),
        }
        return make_conninfo(**{k: v for k, v in params.items() if v is not None})

    async def open_pool(self, options: ConnectionOptions) -> Any:
        """Open an AsyncConnectionPool, waiting at most options.timeout."""
        from psycopg_pool import AsyncConnectionPool

        pool = AsyncConnectionPool(
            self._conninfo(options),
            min_size=1,
            max_size=options.connection_limit,
            kwargs={"autocommit": True, **options.extra},
            open=False,
        )
        timeout = options.timeout_seconds
        try:
            await asyncio.wait_for(pool.open(wait=True, timeout=timeout), timeout=timeout + 1)
        except asyncio.TimeoutError:
            await pool.close()
            raise TimeoutError(
                f"PostgreSQL connection timed out after {timeout}s. "
                "Check credentials and server availability."
            ) from None
        except Exception:
            await pool.close()
            raise
        return pool

    async def close_pool(self, pool: Any) -> None:
        await pool.close()

    def pool_stats(self, pool: Any) -> PoolStats:
        stats = pool.get_stats()
        return PoolStats(
            size=stats.get("pool_size", 0),
            limit=stats.get("pool_max", pool.max_size),
            free=stats.get("pool_available", 0),
        )

    async def acquire(self, pool: Any) -> Any:
        return await pool.getconn()

    async def release(self, pool: Any, conn: Any) -> None:
        await pool.putconn(conn)

    async def execute(self, conn: Any, sql: str) -> QueryResult:
        """Execute SQL, return rows with fields or a MutationResult."""
        from psycopg.rows import dict_row

        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(sql)
            if cur.description is None:
                return QueryResult(MutationResult(cur.rowcount), None)
            rows = await cur.fetchall()
            fields = [FieldInfo(c.name, c.type_code) for c in cur.description]
            return QueryResult(rows, fields)

    async def begin(self, conn: Any) -> None:
        await conn.execute("BEGIN")

    async def commit(self, conn: Any) -> None:
        await conn.execute("COMMIT")

    async def rollback(self, conn: Any) -> None:
        await conn.execute("ROLLBACK")

    def escape_literal(self, value: Any) -> str:
        from psycopg import sql

        return sql.Literal(value).as_string()

    def quote_identifier(self, name: str) -> str:
        from psycopg import sql

        return sql.Identifier(name).as_string()
