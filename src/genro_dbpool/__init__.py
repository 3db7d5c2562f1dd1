# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""genro-dbpool: pooled async database facade with named placeholders.

Components:
    Database: Facade bound to a pool or to a leased transaction connection.
    ConnectionOptions: Connection descriptor (config_from_env, options_from_url).
    PoolRegistry: One pool per (host, database), injectable.
    query_format: ':name' literal / '|name' identifier substitution.

Example:
    from genro_dbpool import ConnectionOptions, Database

    db = Database(ConnectionOptions(host="127.0.0.1", user="root",
                                    password="secret", database="test"))
    results, fields = await db.query("SELECT * FROM |table", {"table": "users"})
    await db.end()
"""

from .config import ConnectionOptions, config_from_env, options_from_url
from .database import ConnectionState, Database
from .errors import (
    ConnectionReleasedError,
    DbPoolError,
    NotATransactionError,
    PoolClosedError,
    TransactionConnectionError,
)
from .formatter import query_format
from .registry import PoolRegistry, get_registry
from .results import FieldInfo, MutationResult, PoolStats, Query, QueryResult

__version__ = "0.1.0"

__all__ = [
    # Facade
    "Database",
    "ConnectionState",
    # Configuration
    "ConnectionOptions",
    "config_from_env",
    "options_from_url",
    # Pools
    "PoolRegistry",
    "get_registry",
    # Formatting
    "query_format",
    # Results
    "Query",
    "QueryResult",
    "MutationResult",
    "FieldInfo",
    "PoolStats",
    # Exceptions
    "DbPoolError",
    "NotATransactionError",
    "TransactionConnectionError",
    "ConnectionReleasedError",
    "PoolClosedError",
]
