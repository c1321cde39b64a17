"""
SQL construction with validated identifiers.

SQLite only binds values (``?``), never table or column names, so every
dynamic statement in the package is assembled here. Identifiers are checked
against ``_SAFE_IDENTIFIER_RE`` before interpolation; values always go
through placeholders.
"""

# ruff: noqa: S608

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Return *name* unchanged if it is a safe SQL identifier.

    Raises ``ValueError`` otherwise.
    """
    if not isinstance(name, str) or not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _validate_all(names: Iterable[str]) -> list[str]:
    return [validate_identifier(n) for n in names]


# ────────────────────────────────────────────────────────────
# PRAGMA helpers
# ────────────────────────────────────────────────────────────


def pragma_table_info(table: str) -> str:
    return f"PRAGMA table_info([{validate_identifier(table)}])"


def pragma_user_version_set(version: int) -> str:
    if not isinstance(version, int) or version < 0:
        raise ValueError(f"Invalid schema version: {version!r}")
    return f"PRAGMA user_version = {version}"


# ────────────────────────────────────────────────────────────
# DML
# ────────────────────────────────────────────────────────────


def select(
    table: str,
    columns: str = "*",
    where: str | None = None,
    order_by: str | None = None,
    suffix: str = "",
) -> str:
    """Build SELECT with a validated table name.

    *where* is a raw clause without the keyword and must use ``?`` for values.
    """
    sql = f"SELECT {columns} FROM {validate_identifier(table)}"
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    if suffix:
        sql += f" {suffix}"
    return sql


def select_count(table: str, where: str | None = None) -> str:
    sql = f"SELECT COUNT(*) as c FROM {validate_identifier(table)}"
    if where:
        sql += f" WHERE {where}"
    return sql


def insert(table: str, columns: Sequence[str]) -> str:
    """Plain INSERT; fails on a unique-key collision."""
    cols = ",".join(_validate_all(columns))
    placeholders = ",".join("?" for _ in columns)
    return f"INSERT INTO {validate_identifier(table)} ({cols}) VALUES ({placeholders})"


def upsert(
    table: str,
    columns: Sequence[str],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
) -> str:
    """INSERT ... ON CONFLICT(...) DO UPDATE for natural-key upserts.

    Unlike INSERT OR REPLACE this keeps the existing row id and any columns
    not listed in *update_columns*.
    """
    cols = ",".join(_validate_all(columns))
    placeholders = ",".join("?" for _ in columns)
    conflict = ",".join(_validate_all(conflict_columns))
    updates = _validate_all(update_columns)
    sql = f"INSERT INTO {validate_identifier(table)} ({cols}) VALUES ({placeholders}) ON CONFLICT({conflict})"
    if not updates:
        return sql + " DO NOTHING"
    sets = ",".join(f"{col} = excluded.{col}" for col in updates)
    return f"{sql} DO UPDATE SET {sets}"


def update(table: str, set_columns: Sequence[str], where: str = "id = ?") -> str:
    sets = ",".join(f"{col} = ?" for col in _validate_all(set_columns))
    return f"UPDATE {validate_identifier(table)} SET {sets} WHERE {where}"


# ────────────────────────────────────────────────────────────
# WHERE helpers
# ────────────────────────────────────────────────────────────


def in_placeholders(count: int) -> str:
    """Return ``?,?,?`` for use in ``IN (...)`` clauses."""
    if count <= 0:
        raise ValueError(f"IN clause needs at least 1 placeholder, got {count}")
    return ",".join("?" for _ in range(count))


def where_and(conditions: list[str]) -> str:
    """Join conditions with AND. Returns empty string if no conditions."""
    if not conditions:
        return ""
    return " AND ".join(conditions)
