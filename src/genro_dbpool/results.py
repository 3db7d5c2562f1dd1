# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Result containers shared by drivers and the facade."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NamedTuple


class Query(NamedTuple):
    """SQL template plus optional placeholder values.

    Use ':word' as value placeholder and '|word' as table/column
    name placeholder.
    """

    sql: str
    params: Mapping[str, Any] | None = None


class FieldInfo(NamedTuple):
    """Column metadata of a result set."""

    name: str
    type_code: Any = None


class MutationResult(NamedTuple):
    """Outcome of a statement without a result set (INSERT, UPDATE, DDL)."""

    affected_rows: int
    insert_id: Any = None


class QueryResult(NamedTuple):
    """What a query resolves to.

    Attributes:
        results: Row dicts for statements with a result set,
            a MutationResult otherwise.
        fields: Column metadata, None when there is no result set.
    """

    results: list[dict[str, Any]] | MutationResult
    fields: list[FieldInfo] | None = None


class PoolStats(NamedTuple):
    """Pool occupancy: open connections, configured limit, idle connections."""

    size: int
    limit: int
    free: int

    @property
    def saturated(self) -> bool:
        """True when every allowed connection is open and none is idle."""
        return self.size >= self.limit and self.free == 0


def as_query(item: Any) -> Query:
    """Normalize a batch item: Query, SQL string, (sql, params) or mapping."""
    if isinstance(item, Query):
        return item
    if isinstance(item, str):
        return Query(item)
    if isinstance(item, Mapping):
        return Query(item["sql"], item.get("params"))
    return Query(*item)


__all__ = ["Query", "FieldInfo", "MutationResult", "QueryResult", "PoolStats", "as_query"]
