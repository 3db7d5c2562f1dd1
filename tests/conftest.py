# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: registries, an in-process fake driver, SQLite and MySQL.

SQLite fixtures use a temporary file, so no server is needed.

MySQL fixtures connect to a server on MYSQL_HOST:MYSQL_PORT
(default 127.0.0.1:3306). Tests marked `mysql` are skipped when the port
is closed. Same for `postgres` with POSTGRES_HOST:POSTGRES_PORT.
"""

from __future__ import annotations

import os
import socket
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio

from genro_dbpool import ConnectionOptions, ConnectionState, Database, PoolRegistry
from genro_dbpool.adapters import DRIVERS, DbDriver
from genro_dbpool.results import FieldInfo, MutationResult, PoolStats, QueryResult

MYSQL_HOST = os.environ.get("MYSQL_HOST", "127.0.0.1")
MYSQL_PORT = int(os.environ.get("MYSQL_PORT", "3306"))
POSTGRES_HOST = os.environ.get("POSTGRES_HOST", "127.0.0.1")
POSTGRES_PORT = int(os.environ.get("POSTGRES_PORT", "5432"))

CREATE_TEST_TABLE = """
    CREATE TABLE test (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        testcol1 VARCHAR(45) NULL DEFAULT NULL,
        testcol2 VARCHAR(45) NULL DEFAULT NULL,
        testcol3 VARCHAR(45) NULL DEFAULT NULL
    )
"""


def _is_port_open(host: str, port: int) -> bool:
    """Check if a port is open."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((host, port))
        sock.close()
        return result == 0
    except Exception:
        return False


@pytest.fixture(autouse=True)
def skip_if_server_unavailable(request):
    """Auto-skip server-marked tests if the server is not reachable."""
    if request.node.get_closest_marker("mysql"):
        if not _is_port_open(MYSQL_HOST, MYSQL_PORT):
            pytest.skip(f"MySQL not available at {MYSQL_HOST}:{MYSQL_PORT}")
    if request.node.get_closest_marker("postgres"):
        if not _is_port_open(POSTGRES_HOST, POSTGRES_PORT):
            pytest.skip(f"PostgreSQL not available at {POSTGRES_HOST}:{POSTGRES_PORT}")


# -----------------------------------------------------------------------------
# Fake driver
# -----------------------------------------------------------------------------


class FakeDriver(DbDriver):
    """Driver recording every call, with injectable failures.

    Attributes:
        calls: Operation names in call order.
        executed: SQL strings received by execute().
        fail: Operation name -> exception raised by that operation.
        fail_sql: SQL strings on which execute() raises RuntimeError.
        stats: PoolStats returned by pool_stats().
    """

    name = "fake"

    def __init__(self):
        self.calls: list[str] = []
        self.executed: list[str] = []
        self.fail: dict[str, Exception] = {}
        self.fail_sql: set[str] = set()
        self.stats = PoolStats(size=1, limit=10, free=1)
        self._next_conn = 0

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail:
            raise self.fail[operation]

    async def open_pool(self, options: ConnectionOptions) -> Any:
        self._record("open_pool")
        return {"options": options}

    async def close_pool(self, pool: Any) -> None:
        self._record("close_pool")

    def pool_stats(self, pool: Any) -> PoolStats:
        return self.stats

    async def acquire(self, pool: Any) -> Any:
        self._record("acquire")
        self._next_conn += 1
        return f"conn-{self._next_conn}"

    async def release(self, pool: Any, conn: Any) -> None:
        self._record("release")

    async def execute(self, conn: Any, sql: str) -> QueryResult:
        self._record("execute")
        self.executed.append(sql)
        if sql in self.fail_sql:
            raise RuntimeError(f"bad sql: {sql}")
        if sql.lstrip().upper().startswith("SELECT"):
            return QueryResult([{"conn": conn, "sql": sql}], [FieldInfo("conn"), FieldInfo("sql")])
        return QueryResult(MutationResult(1), None)

    async def begin(self, conn: Any) -> None:
        self._record("begin")

    async def commit(self, conn: Any) -> None:
        self._record("commit")

    async def rollback(self, conn: Any) -> None:
        self._record("rollback")

    def escape_literal(self, value: Any) -> str:
        return f"<{value!r}>"

    def quote_identifier(self, name: str) -> str:
        return f"[{name}]"


@pytest.fixture
def registry() -> PoolRegistry:
    """Fresh registry per test, so pools never leak between tests."""
    return PoolRegistry()


@pytest.fixture
def fake_driver_registered(monkeypatch) -> None:
    """Register FakeDriver under the 'fake' driver name."""
    monkeypatch.setitem(DRIVERS, "fake", FakeDriver)


@pytest.fixture
def fake_db(registry, fake_driver_registered) -> Database:
    """Pooled facade backed by FakeDriver."""
    return Database(ConnectionOptions(driver="fake", host="fakehost", database="fakedb"), registry=registry)


# -----------------------------------------------------------------------------
# SQLite
# -----------------------------------------------------------------------------


@pytest.fixture
def sqlite_options(tmp_path) -> ConnectionOptions:
    return ConnectionOptions(driver="sqlite", host=None, database=str(tmp_path / "test.db"))


@pytest_asyncio.fixture
async def sqlite_db(registry, sqlite_options) -> AsyncGenerator[Database, None]:
    """Pooled SQLite facade with an empty `test` table."""
    db = Database(sqlite_options, registry=registry)
    await db.query(CREATE_TEST_TABLE)
    yield db
    if db.state is ConnectionState.POOLED:
        await db.end()


# -----------------------------------------------------------------------------
# MySQL
# -----------------------------------------------------------------------------


@pytest.fixture
def mysql_options() -> ConnectionOptions:
    return ConnectionOptions(
        driver="mysql",
        host=MYSQL_HOST,
        port=MYSQL_PORT,
        user=os.environ.get("MYSQL_USER", "root"),
        password=os.environ.get("MYSQL_PASSWORD", "rootpassword"),
        database=os.environ.get("MYSQL_DATABASE", "test"),
        charset="utf8",
        timeout=60000,
    )


@pytest_asyncio.fixture
async def mysql_db(registry, mysql_options) -> AsyncGenerator[Database, None]:
    """Pooled MySQL facade with a fresh `test` table."""
    db = Database(mysql_options, registry=registry)
    await db.query("DROP TABLE IF EXISTS test")
    await db.query(
        """
        CREATE TABLE test (
            id INT(11) NOT NULL AUTO_INCREMENT PRIMARY KEY,
            testcol1 VARCHAR(45) NULL DEFAULT NULL,
            testcol2 VARCHAR(45) NULL DEFAULT NULL,
            testcol3 VARCHAR(45) NULL DEFAULT NULL
        )
        """
    )
    yield db
    if db.state is ConnectionState.POOLED:
        await db.query("DROP TABLE IF EXISTS test")
        await db.end()
