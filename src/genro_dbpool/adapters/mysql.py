# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MySQL async driver using aiomysql pools and PyMySQL escaping."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import aiomysql
from pymysql.constants import CLIENT
from pymysql.converters import escape_item
from sqlalchemy.dialects.mysql.base import MySQLDialect

from ..results import FieldInfo, MutationResult, PoolStats, QueryResult
from .base import DbDriver

if TYPE_CHECKING:
    from ..config import ConnectionOptions


class MySqlDriver(DbDriver):
    """MySQL driver with aiomysql connection pooling.

    Pool connections use DictCursor and autocommit, so rows come back as
    dicts and a query issued through the pool commits on its own. begin()
    opens an explicit transaction on a leased connection.

    Literals are escaped by PyMySQL (escape_item), identifiers by the
    SQLAlchemy MySQL identifier preparer (backtick quoting).
    """

    name = "mysql"
    default_port = 3306

    def __init__(self):
        # named paramstyle: no "%" doubling, queries are sent without parameters
        self._preparer = MySQLDialect(paramstyle="named").identifier_preparer

    async def open_pool(self, options: ConnectionOptions) -> aiomysql.Pool:
        """Create an aiomysql pool sized by options.connection_limit."""
        client_flag = CLIENT.MULTI_STATEMENTS if options.multiple_statements else 0
        return await aiomysql.create_pool(
            minsize=0,
            maxsize=options.connection_limit,
            host=options.host or "127.0.0.1",
            port=options.port or self.default_port,
            user=options.user,
            password=options.password or "",
            db=options.database,
            charset=options.charset,
            connect_timeout=options.timeout_seconds,
            autocommit=True,
            client_flag=client_flag,
            cursorclass=aiomysql.DictCursor,
            **options.extra,
        )

    async def close_pool(self, pool: aiomysql.Pool) -> None:
        """Close the pool, leased connections included, and wait for it.

        terminate() also closes connections held by open transactions, so
        wait_closed() does not wait for them to be released.
        """
        pool.terminate()
        await pool.wait_closed()

    def pool_stats(self, pool: aiomysql.Pool) -> PoolStats:
        return PoolStats(size=pool.size, limit=pool.maxsize, free=pool.freesize)

    async def acquire(self, pool: aiomysql.Pool) -> aiomysql.Connection:
        return await pool.acquire()

    async def release(self, pool: aiomysql.Pool, conn: aiomysql.Connection) -> None:
        await pool.release(conn)

    async def execute(self, conn: aiomysql.Connection, sql: str) -> QueryResult:
        """Execute SQL, return rows with fields or a MutationResult."""
        async with conn.cursor() as cur:
            await cur.execute(sql)
            if cur.description is None:
                return QueryResult(MutationResult(cur.rowcount, cur.lastrowid), None)
            rows = await cur.fetchall()
            fields = [FieldInfo(d[0], d[1]) for d in cur.description]
            return QueryResult(list(rows), fields)

    async def begin(self, conn: aiomysql.Connection) -> None:
        await conn.begin()

    async def commit(self, conn: aiomysql.Connection) -> None:
        await conn.commit()

    async def rollback(self, conn: aiomysql.Connection) -> None:
        await conn.rollback()

    def escape_literal(self, value: Any) -> str:
        """Escape value as a MySQL literal.

        Mappings render as "`key` = literal" pairs, handy for
        "UPDATE t SET :changes". Everything else goes to escape_item:
        None -> NULL, numbers verbatim, strings quoted, dates quoted in
        MySQL format, sequences as a parenthesized list.
        """
        if isinstance(value, Mapping):
            return ", ".join(
                f"{self.escape_identifier(key)} = {self.escape_literal(item)}"
                for key, item in value.items()
            )
        # PyMySQL encoders ignore the charset argument; the connection
        # charset is set from options.charset in open_pool()
        return escape_item(value, None)

    def quote_identifier(self, name: str) -> str:
        return self._preparer.quote_identifier(name)
