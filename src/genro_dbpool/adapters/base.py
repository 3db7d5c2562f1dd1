# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base driver class for async database backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import ConnectionOptions
    from ..results import PoolStats, QueryResult


class DbDriver(ABC):
    """Abstract base class for async database drivers.

    Provides a unified interface over MySQL, PostgreSQL and SQLite:
    - Pool management (open_pool, close_pool, pool_stats)
    - Connection leasing (acquire, release)
    - Transaction control (begin, commit, rollback on connection)
    - Query execution (execute)
    - Escaping (escape_literal, escape_identifier)

    Connection model:
    - Pooled connections run in autocommit mode, so a query issued
      through the pool is committed on its own.
    - begin() opens an explicit transaction on a leased connection,
      closed by commit() or rollback().

    Subclasses implement the abstract methods. Escaping always goes through
    the backend's own routines, never through string concatenation.
    """

    name: str = ""  # Override in subclass

    # -------------------------------------------------------------------------
    # Pool management
    # -------------------------------------------------------------------------

    @abstractmethod
    async def open_pool(self, options: ConnectionOptions) -> Any:
        """Create the driver pool for options and return it."""
        ...

    @abstractmethod
    async def close_pool(self, pool: Any) -> None:
        """Close the driver pool and every connection it holds."""
        ...

    @abstractmethod
    def pool_stats(self, pool: Any) -> PoolStats:
        """Return open connections, configured limit and idle connections."""
        ...

    @abstractmethod
    async def acquire(self, pool: Any) -> Any:
        """Lease a connection from pool. May wait when pool is saturated."""
        ...

    @abstractmethod
    async def release(self, pool: Any, conn: Any) -> None:
        """Give a leased connection back to pool."""
        ...

    # -------------------------------------------------------------------------
    # Connection-bound operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def execute(self, conn: Any, sql: str) -> QueryResult:
        """Run already formatted SQL on conn."""
        ...

    @abstractmethod
    async def begin(self, conn: Any) -> None:
        """Start a transaction on conn."""
        ...

    @abstractmethod
    async def commit(self, conn: Any) -> None:
        """Commit the transaction on conn."""
        ...

    @abstractmethod
    async def rollback(self, conn: Any) -> None:
        """Rollback the transaction on conn."""
        ...

    # -------------------------------------------------------------------------
    # Escaping
    # -------------------------------------------------------------------------

    @abstractmethod
    def escape_literal(self, value: Any) -> str:
        """Render value as a SQL literal."""
        ...

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Quote a single identifier segment."""
        ...

    def escape_identifier(self, value: Any) -> str:
        """Render value as a quoted identifier.

        Dotted names are quoted per segment ("db.users" -> `db`.`users`),
        sequences become a comma separated list of identifiers.
        """
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            return ", ".join(self.escape_identifier(item) for item in value)
        return ".".join(self.quote_identifier(part) for part in str(value).split("."))
