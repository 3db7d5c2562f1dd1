# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database drivers for MySQL, PostgreSQL and SQLite.

This package provides async drivers with a unified interface for pooling,
leasing connections, running queries, transaction control and escaping.
The facade in genro_dbpool.database never talks to aiomysql, psycopg or
aiosqlite directly: it goes through a DbDriver.

Components:
    DbDriver: Abstract base class defining the driver interface.
    MySqlDriver: aiomysql pools, PyMySQL literal escaping.
    SqliteDriver: aiosqlite connection per lease.
    PostgresDriver: psycopg_pool pools, psycopg.sql escaping.
    get_driver: Factory returning a driver instance by name.

Note:
    PostgreSQL requires psycopg: `pip install genro-dbpool[postgresql]`.
"""

from .base import DbDriver
from .mysql import MySqlDriver
from .sqlite import SqliteDriver

__all__ = ["DbDriver", "MySqlDriver", "SqliteDriver", "DRIVERS", "get_driver"]

# Driver registry
DRIVERS: dict[str, type[DbDriver]] = {
    "mysql": MySqlDriver,
    "sqlite": SqliteDriver,
}


def get_driver(name: str) -> DbDriver:
    """Create a driver from its name.

    Args:
        name: "mysql", "postgresql" (or "postgres"), "sqlite", or any name
            added to DRIVERS.

    Returns:
        A new DbDriver instance.

    Raises:
        ValueError: If no driver is registered under name.
        ImportError: If postgresql requested but psycopg not installed.
    """
    key = name.lower()

    if key in ("postgresql", "postgres") and key not in DRIVERS:
        # Lazy import to avoid ImportError when psycopg not installed
        from .postgresql import PostgresDriver

        DRIVERS["postgresql"] = PostgresDriver
        DRIVERS["postgres"] = PostgresDriver

    if key not in DRIVERS:
        raise ValueError(f"Unknown database type: '{name}'. Supported: mysql, postgresql, sqlite")
    return DRIVERS[key]()
