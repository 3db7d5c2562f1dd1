# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Named placeholder substitution for SQL templates.

Placeholders:
    :word   replaced by the value escaped as a literal
    |word   replaced by the value escaped as a table/column identifier

Tokens whose name is not a key of the values mapping are left untouched,
so casts like ``x::text`` or a literal ``|`` survive as long as no key
with the same name is given.

Example:
    >>> query_format("SELECT * FROM |table WHERE id = :id",
    ...              {"table": "users", "id": 7}, MySqlDriver())
    'SELECT * FROM `users` WHERE id = 7'
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol

PLACEHOLDER_RE = re.compile(r"[:|](\w+)", re.ASCII)


class Escaper(Protocol):
    """Anything providing driver-vetted literal and identifier escaping."""

    def escape_literal(self, value: Any) -> str: ...

    def escape_identifier(self, value: Any) -> str: ...


def query_format(query: str, values: Mapping[str, Any] | None, escaper: Escaper) -> str:
    """Return query with known placeholders replaced by escaped values.

    Args:
        query: SQL template.
        values: Placeholder name to value mapping. None or empty returns
            query unchanged.
        escaper: Driver whose escaping routines render the values.

    Returns:
        The substituted SQL string.
    """
    if not values:
        return query

    def substitute(match: re.Match[str]) -> str:
        token, key = match.group(0), match.group(1)
        if key not in values:
            return token
        if token[0] == ":":
            return escaper.escape_literal(values[key])
        return escaper.escape_identifier(values[key])

    return PLACEHOLDER_RE.sub(substitute, query)


__all__ = ["Escaper", "PLACEHOLDER_RE", "query_format"]
