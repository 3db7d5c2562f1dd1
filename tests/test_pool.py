# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for pool module - lazy opening, formatter hook, leases."""

from __future__ import annotations

import asyncio

import pytest

from genro_dbpool import ConnectionOptions, PoolClosedError, PoolStats
from genro_dbpool.pool import ConnectionPool

from conftest import FakeDriver


@pytest.fixture
def pool() -> ConnectionPool:
    return ConnectionPool(FakeDriver(), ConnectionOptions(driver="fake", host="h", database="d"))


class TestLazyOpen:
    async def test_not_opened_at_construction(self, pool):
        assert pool.is_open is False
        assert pool.driver.calls == []

    async def test_opened_once_on_first_query(self, pool):
        await pool.query("SELECT 1")
        await pool.query("SELECT 2")
        assert pool.driver.calls.count("open_pool") == 1

    async def test_concurrent_first_use_opens_once(self, pool):
        await asyncio.gather(*(pool.query(f"SELECT {i}") for i in range(5)))
        assert pool.driver.calls.count("open_pool") == 1

    async def test_stats_before_open(self, pool):
        assert pool.stats() == PoolStats(0, 10, 0)
        assert pool.is_saturated() is False


class TestFormatterHook:
    async def test_query_is_formatted(self, pool):
        await pool.query("SELECT :a FROM |t", {"a": 1, "t": "x"})
        assert pool.driver.executed == ["SELECT <1> FROM [x]"]

    async def test_custom_formatter(self):
        calls = []

        def formatter(sql, params, driver):
            calls.append((sql, params))
            return sql.upper()

        pool = ConnectionPool(
            FakeDriver(), ConnectionOptions(driver="fake", host="h", database="d"), formatter=formatter
        )
        await pool.query("select 1", {"a": 1})
        assert calls == [("select 1", {"a": 1})]
        assert pool.driver.executed == ["SELECT 1"]

    async def test_lease_uses_pool_formatter(self, pool):
        lease = await pool.acquire()
        await lease.query("UPDATE t SET a = :a", {"a": "v"})
        assert pool.driver.executed == ["UPDATE t SET a = <'v'>"]
        await lease.release()


class TestQueryConnection:
    async def test_connection_released_after_query(self, pool):
        await pool.query("SELECT 1")
        assert pool.driver.calls == ["open_pool", "acquire", "execute", "release"]

    async def test_connection_released_on_error(self, pool):
        pool.driver.fail_sql.add("BROKEN")
        with pytest.raises(RuntimeError, match="bad sql"):
            await pool.query("BROKEN")
        assert pool.driver.calls[-1] == "release"


class TestLease:
    async def test_release_is_idempotent(self, pool):
        lease = await pool.acquire()
        await lease.release()
        await lease.release()
        assert pool.driver.calls.count("release") == 1
        assert lease.released is True

    async def test_release_after_close_reaches_driver(self, pool):
        lease = await pool.acquire()
        raw = lease.raw
        await pool.close()
        await lease.release()
        assert pool.driver.calls[-2:] == ["close_pool", "release"]
        assert lease.raw is raw


class TestClose:
    async def test_close_unopened_pool_skips_driver(self, pool):
        await pool.close()
        assert pool.closed is True
        assert "close_pool" not in pool.driver.calls

    async def test_closed_pool_rejects_queries(self, pool):
        await pool.query("SELECT 1")
        await pool.close()
        assert pool.driver.calls[-1] == "close_pool"
        with pytest.raises(PoolClosedError, match="is closed"):
            await pool.query("SELECT 1")
        with pytest.raises(PoolClosedError):
            await pool.acquire()
