# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Registry of connection pools keyed by (host, database).

A PoolRegistry guarantees at most one ConnectionPool per (host, database)
pair: building two facades with the same host and database shares one
pool. Applications own a registry and pass it to Database(); the process
default from get_registry() is used when none is given.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import ConnectionOptions
    from .pool import ConnectionPool

logger = logging.getLogger(__name__)

PoolKey = tuple[str | None, str | None]


class PoolRegistry:
    """Thread-safe (host, database) -> ConnectionPool mapping."""

    def __init__(self) -> None:
        self._pools: dict[PoolKey, ConnectionPool] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, key: object) -> bool:
        return key in self._pools

    def keys(self) -> list[PoolKey]:
        with self._lock:
            return list(self._pools)

    def get(self, key: PoolKey) -> ConnectionPool | None:
        return self._pools.get(key)

    def get_or_create(
        self,
        options: ConnectionOptions,
        factory: Callable[[], ConnectionPool],
    ) -> ConnectionPool:
        """Return the pool for options.pool_key, creating it with factory once."""
        key = options.pool_key
        with self._lock:
            pool = self._pools.get(key)
            if pool is None:
                pool = factory()
                self._pools[key] = pool
            return pool

    def discard(self, key: PoolKey, pool: ConnectionPool | None = None) -> bool:
        """Remove the entry for key.

        When pool is given, the entry is removed only if it still maps to
        that pool. Returns True if an entry was removed.
        """
        with self._lock:
            current = self._pools.get(key)
            if current is None or (pool is not None and current is not pool):
                return False
            del self._pools[key]
            return True

    async def close_all(self) -> list[Exception]:
        """Close every registered pool and empty the registry.

        Returns:
            Close errors, one per pool that failed to close.
        """
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
        errors: list[Exception] = []
        for pool in pools:
            try:
                await pool.close()
            except Exception as e:
                host, database = pool.key
                logger.warning("Pool %s/%s closed with error: %s", host, database, e)
                errors.append(e)
        return errors


_registry: PoolRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> PoolRegistry:
    """Return the process default PoolRegistry (created on first call)."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = PoolRegistry()
    return _registry


__all__ = ["PoolKey", "PoolRegistry", "get_registry"]
