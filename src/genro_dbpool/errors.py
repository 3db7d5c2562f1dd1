# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Usage errors raised by the connection facade.

Driver errors (pymysql, psycopg, sqlite3) are never wrapped: they reach the
caller unchanged. The classes here only cover lifecycle misuse, such as
committing a pooled facade or querying after a transaction was released.
"""

from __future__ import annotations


class DbPoolError(Exception):
    """Base class for lifecycle errors raised by genro_dbpool."""


class NotATransactionError(DbPoolError):
    """Raised when commit/rollback is called on a pooled facade."""

    def __init__(self, operation: str = "commit"):
        self.operation = operation
        super().__init__(f"It is not a transaction connection ({operation}).")


class TransactionConnectionError(DbPoolError):
    """Raised when a pool-only operation is called on a transaction facade."""

    def __init__(self, operation: str = "end"):
        self.operation = operation
        super().__init__(
            f"It is a transaction connection, use commit or rollback "
            f"to release the connection ({operation})."
        )


class ConnectionReleasedError(DbPoolError):
    """Raised on any operation after commit, rollback or end."""

    def __init__(self, operation: str = "query"):
        self.operation = operation
        super().__init__(
            f"No active connection: it was already released ({operation})."
        )


class PoolClosedError(DbPoolError):
    """Raised when a closed pool is asked for a connection."""

    def __init__(self, key: tuple[str | None, str | None]):
        self.key = key
        host, database = key
        super().__init__(f"Pool for host={host!r} database={database!r} is closed")


__all__ = [
    "DbPoolError",
    "NotATransactionError",
    "TransactionConnectionError",
    "ConnectionReleasedError",
    "PoolClosedError",
]
