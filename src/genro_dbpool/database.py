# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Connection facade over a pooled or leased database connection.

A Database is in one of three states:

- POOLED: bound to a shared ConnectionPool. Queries run concurrently on
  connections leased for their duration. Can begin transactions and end
  the pool, cannot commit or rollback.
- LEASED: bound to one connection with an open transaction, as returned by
  begin_transaction(). Queries run on that connection until commit() or
  rollback().
- RELEASED: terminal. Reached after commit, rollback or end; every further
  operation raises ConnectionReleasedError.

Usage:
    db = Database(ConnectionOptions(host="127.0.0.1", user="admin",
                                    password="secret", database="test"))

    results, fields = await db.query(
        "SELECT * FROM |table WHERE id = :id", {"table": "users", "id": 7}
    )

    tdb = await db.begin_transaction()
    try:
        await tdb.query("INSERT INTO users (name) VALUES (:name)", {"name": "ann"})
        await tdb.commit()
    except Exception:
        await tdb.rollback()
        raise

    async with db.transaction() as tdb:
        await tdb.query("DELETE FROM users WHERE id = :id", {"id": 7})
    # COMMIT on success, ROLLBACK on exception

    await db.end()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import replace
from enum import Enum
from typing import Any

from .adapters import get_driver
from .config import ConnectionOptions, options_from_url
from .errors import (
    ConnectionReleasedError,
    NotATransactionError,
    TransactionConnectionError,
)
from .formatter import query_format
from .pool import ConnectionPool, PooledConnection
from .registry import PoolRegistry, get_registry
from .results import QueryResult, as_query

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle state of a Database facade.

    Attributes:
        POOLED: Bound to a shared pool.
        LEASED: Bound to one connection inside a transaction.
        RELEASED: Transaction closed or pool ended; no connection.
    """

    POOLED = "pooled"
    LEASED = "leased"
    RELEASED = "released"


class Database:
    """Query and transaction facade bound to a pool or a leased connection.

    Attributes:
        state: Current ConnectionState.
        registry: PoolRegistry holding the pool (POOLED facades only).
        pool: ConnectionPool backing this facade.
    """

    def __init__(
        self,
        options: ConnectionOptions | PooledConnection,
        *,
        registry: PoolRegistry | None = None,
    ):
        """Bind to the pool for options, or wrap a leased connection.

        Args:
            options: Connection descriptor, or a PooledConnection already
                inside a transaction (used by begin_transaction).
            registry: Pool registry to look up or store the pool in.
                Defaults to the process registry from get_registry().
        """
        self._lease: PooledConnection | None = None
        self.registry: PoolRegistry | None = None
        self._options: ConnectionOptions | None = None

        if isinstance(options, PooledConnection):
            self.pool: ConnectionPool = options.pool
            self._lease = options
            self.state = ConnectionState.LEASED
            return

        self._options = replace(options, extra=dict(options.extra))
        self.registry = registry if registry is not None else get_registry()
        resolved = self._options
        self.pool = self.registry.get_or_create(
            resolved,
            lambda: ConnectionPool(get_driver(resolved.driver), resolved, formatter=query_format),
        )
        self.state = ConnectionState.POOLED

    @classmethod
    def from_url(cls, url: str, *, registry: PoolRegistry | None = None) -> Database:
        """Build a pooled facade from a connection URL."""
        return cls(options_from_url(url), registry=registry)

    @property
    def options(self) -> ConnectionOptions:
        """Options this facade was built with (the pool's for leased ones)."""
        return self._options or self.pool.options

    @property
    def connection_type(self) -> str:
        return self.state.value

    @property
    def in_transaction(self) -> bool:
        return self.state is ConnectionState.LEASED

    def __repr__(self) -> str:
        host, database = self.pool.key
        return f"<Database {self.state.value} {self.pool.driver.name}://{host}/{database}>"

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query_format(self, sql: str, params: Mapping[str, Any] | None = None) -> str:
        """Return the SQL this facade would send for sql and params."""
        return self.pool.format(sql, params)

    async def query(self, sql: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        """Run one query.

        Args:
            sql: SQL template; ':word' is a value placeholder,
                '|word' a table/column name placeholder.
            params: Placeholder values.

        Returns:
            QueryResult(results, fields).

        Raises:
            ConnectionReleasedError: If the facade is RELEASED.
        """
        if self.state is ConnectionState.POOLED:
            return await self.pool.query(sql, params)
        if self.state is ConnectionState.LEASED:
            return await self._lease.query(sql, params)
        raise ConnectionReleasedError("query")

    async def parallel_queries(self, queries: Iterable[Any]) -> list[QueryResult]:
        """Issue all queries at once, results in input order.

        Items may be Query tuples, SQL strings, (sql, params) pairs or
        mappings with 'sql' and 'params' keys. The first failure propagates.
        """
        items = [as_query(item) for item in queries]
        return list(await asyncio.gather(*(self.query(q.sql, q.params) for q in items)))

    async def series_queries(self, queries: Iterable[Any]) -> list[QueryResult]:
        """Run queries one after the other, results in input order.

        Stops at the first failure: later queries are never issued.
        """
        results: list[QueryResult] = []
        for item in queries:
            q = as_query(item)
            results.append(await self.query(q.sql, q.params))
        return results

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def begin_transaction(self) -> Database:
        """Lease a connection, start a transaction, return a LEASED facade.

        Logs a warning when the pool has no free connection: the call then
        waits for the driver to hand one back.

        Raises:
            TransactionConnectionError: If called on a LEASED facade.
            ConnectionReleasedError: If called on a RELEASED facade.
        """
        if self.state is ConnectionState.LEASED:
            raise TransactionConnectionError("begin_transaction")
        if self.state is ConnectionState.RELEASED:
            raise ConnectionReleasedError("begin_transaction")

        if self.pool.is_saturated():
            stats = self.pool.stats()
            logger.warning(
                "All connections occupied (%d/%d), waiting for a free one", stats.size, stats.limit
            )

        lease = await self.pool.acquire()
        try:
            await lease.begin()
        except BaseException:
            await lease.release()
            raise
        return Database(lease)

    async def commit(self) -> None:
        """Commit the transaction and release the connection.

        If COMMIT fails, one ROLLBACK is attempted, the connection is
        released whatever the rollback outcome, and the commit error is
        raised.

        Raises:
            NotATransactionError: If called on a POOLED facade.
            ConnectionReleasedError: If already committed or rolled back.
        """
        lease = self._require_lease("commit")
        try:
            await lease.commit()
        except Exception:
            try:
                await lease.rollback()
            except Exception:
                logger.warning("Rollback after failed commit also failed", exc_info=True)
            raise
        finally:
            await self._release(lease)

    async def rollback(self) -> None:
        """Rollback the transaction and release the connection.

        Raises:
            NotATransactionError: If called on a POOLED facade.
            ConnectionReleasedError: If already committed or rolled back.
        """
        lease = self._require_lease("rollback")
        try:
            await lease.rollback()
        finally:
            await self._release(lease)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """Context manager: commit on success, rollback on exception.

        Usage:
            async with db.transaction() as tdb:
                await tdb.query("INSERT INTO t (a) VALUES (:a)", {"a": 1})
        """
        tdb = await self.begin_transaction()
        try:
            yield tdb
        except BaseException:
            if tdb.in_transaction:
                try:
                    await tdb.rollback()
                except Exception:
                    logger.warning("Rollback after failed transaction block also failed", exc_info=True)
            raise
        if tdb.in_transaction:
            await tdb.commit()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def end(self) -> Exception | None:
        """Close the pool and remove it from the registry.

        Never raises for driver close errors: the error is logged and
        returned, so shutdown sequences can always complete.

        Returns:
            None on a clean close, the close error otherwise.

        Raises:
            TransactionConnectionError: If called on a LEASED facade.
            ConnectionReleasedError: If the facade is already RELEASED.
        """
        if self.state is ConnectionState.LEASED:
            raise TransactionConnectionError("end")
        if self.state is ConnectionState.RELEASED:
            raise ConnectionReleasedError("end")

        error: Exception | None = None
        try:
            await self.pool.close()
        except Exception as e:
            logger.warning("Connection End with Error: %s", e)
            error = e
        else:
            logger.info("Connection End.")
        finally:
            self.registry.discard(self.pool.key, self.pool)
            self.state = ConnectionState.RELEASED
        return error

    # -------------------------------------------------------------------------
    # Private helpers
    # -------------------------------------------------------------------------

    def _require_lease(self, operation: str) -> PooledConnection:
        if self.state is ConnectionState.POOLED:
            raise NotATransactionError(operation)
        if self.state is ConnectionState.RELEASED:
            raise ConnectionReleasedError(operation)
        return self._lease

    async def _release(self, lease: PooledConnection) -> None:
        self.state = ConnectionState.RELEASED
        self._lease = None
        await lease.release()


__all__ = ["ConnectionState", "Database"]
