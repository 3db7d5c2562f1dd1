# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Lazily opened connection pool with a query-rewriting hook.

A ConnectionPool binds one driver to one (host, database) pair. The driver
pool is created on first use, never at construction, so building a facade
performs no I/O. Every SQL string goes through the pool's formatter before
reaching the driver, for pooled queries and leased connections alike.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .errors import PoolClosedError
from .formatter import query_format
from .results import PoolStats, QueryResult

if TYPE_CHECKING:
    from .adapters import DbDriver
    from .config import ConnectionOptions

logger = logging.getLogger(__name__)

Formatter = Callable[[str, Mapping[str, Any] | None, Any], str]


class ConnectionPool:
    """Driver pool for one (host, database) pair.

    Attributes:
        driver: DbDriver executing queries and escaping values.
        options: ConnectionOptions the driver pool is opened with.
        formatter: Query-rewriting hook, called as
            formatter(sql, params, driver) before every execution.
    """

    def __init__(
        self,
        driver: DbDriver,
        options: ConnectionOptions,
        formatter: Formatter = query_format,
    ):
        self.driver = driver
        self.options = options
        self.formatter = formatter
        self.closed = False
        self._raw: Any = None
        self._open_lock: asyncio.Lock | None = None

    @property
    def key(self) -> tuple[str | None, str | None]:
        return self.options.pool_key

    @property
    def is_open(self) -> bool:
        """True once the driver pool has been created."""
        return self._raw is not None

    def format(self, sql: str, params: Mapping[str, Any] | None = None) -> str:
        """Return sql with placeholders substituted by the formatter hook."""
        return self.formatter(sql, params, self.driver)

    async def _ensure_pool(self) -> Any:
        """Open the driver pool if not already open."""
        if self.closed:
            raise PoolClosedError(self.key)
        if self._raw is not None:
            return self._raw
        if self._open_lock is None:
            self._open_lock = asyncio.Lock()
        async with self._open_lock:
            if self._raw is None:
                self._raw = await self.driver.open_pool(self.options)
                host, database = self.key
                logger.info("Opened %s pool for %s/%s", self.driver.name, host, database)
        return self._raw

    def stats(self) -> PoolStats:
        """Pool occupancy; an unopened pool reports zero connections."""
        if self._raw is None:
            return PoolStats(0, self.options.connection_limit, 0)
        return self.driver.pool_stats(self._raw)

    def is_saturated(self) -> bool:
        """True when every allowed connection is busy."""
        return self.stats().saturated

    async def acquire(self) -> PooledConnection:
        """Lease a connection from the pool."""
        raw = await self._ensure_pool()
        conn = await self.driver.acquire(raw)
        return PooledConnection(self, conn, raw)

    async def query(self, sql: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        """Run one query on a connection leased for its duration."""
        statement = self.format(sql, params)
        raw = await self._ensure_pool()
        conn = await self.driver.acquire(raw)
        try:
            return await self.driver.execute(conn, statement)
        finally:
            await self.driver.release(raw, conn)

    async def close(self) -> None:
        """Close the driver pool. The pool cannot be reopened.

        Connections still leased are closed by the driver; releasing them
        afterwards only frees the lease.
        """
        self.closed = True
        raw, self._raw = self._raw, None
        if raw is not None:
            await self.driver.close_pool(raw)


class PooledConnection:
    """A connection leased from a ConnectionPool.

    Exclusively owned by one transaction facade until release().
    """

    def __init__(self, pool: ConnectionPool, conn: Any, raw: Any):
        self.pool = pool
        self.conn = conn
        self.raw = raw
        self.released = False

    @property
    def driver(self) -> DbDriver:
        return self.pool.driver

    async def query(self, sql: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        return await self.driver.execute(self.conn, self.pool.format(sql, params))

    async def begin(self) -> None:
        await self.driver.begin(self.conn)

    async def commit(self) -> None:
        await self.driver.commit(self.conn)

    async def rollback(self) -> None:
        await self.driver.rollback(self.conn)

    async def release(self) -> None:
        """Give the connection back to the driver pool it came from.

        Safe to call twice, and after the pool was closed: drivers accept
        connections returned to a closed pool.
        """
        if self.released:
            return
        self.released = True
        await self.driver.release(self.raw, self.conn)


__all__ = ["ConnectionPool", "PooledConnection"]
