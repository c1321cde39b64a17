"""
Schema convergence: introspect, diff, apply.

Reads the declarative schema from attention.schema and converges any SQLite
database to match it. Two entry points:

  converge(conn)     For existing DBs: adds missing tables/columns/indexes.
  create_fresh(conn) For new/test DBs: drops everything and creates clean.

converge never drops tables or columns.
"""

import logging
import re
import sqlite3

from attention import safe_sql, schema

logger = logging.getLogger(__name__)

# Clauses valid in CREATE TABLE but rejected by ALTER TABLE ADD COLUMN
_STRIP_PATTERNS = [
    re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE),
    re.compile(r"\bAUTOINCREMENT\b", re.IGNORECASE),
    re.compile(r"\bUNIQUE\b", re.IGNORECASE),
    re.compile(r"\bREFERENCES\s+\w+\s*\([^)]*\)", re.IGNORECASE),
    re.compile(r"\bCHECK\s*\([^)]*\)", re.IGNORECASE),
]
# ADD COLUMN only accepts constant defaults
_EXPRESSION_DEFAULT = re.compile(r"\bDEFAULT\s*\(.*\)", re.IGNORECASE)


def make_alter_safe(col_def: str) -> str:
    """
    Turn a CREATE TABLE column definition into one accepted by
    ALTER TABLE ADD COLUMN.

    Drops PRIMARY KEY, AUTOINCREMENT, UNIQUE, REFERENCES and CHECK clauses
    and expression defaults; NOT NULL without a DEFAULT gets ``DEFAULT ''``.
    """
    safe = col_def
    for pattern in _STRIP_PATTERNS:
        safe = pattern.sub("", safe)
    safe = _EXPRESSION_DEFAULT.sub("", safe)
    safe = re.sub(r"\s{2,}", " ", safe).strip()

    has_not_null = re.search(r"\bNOT\s+NULL\b", safe, re.IGNORECASE)
    has_default = re.search(r"\bDEFAULT\b", safe, re.IGNORECASE)
    if has_not_null and not has_default:
        safe = safe + " DEFAULT ''"
    return safe


def _get_existing_tables(conn: sqlite3.Connection) -> set[str]:
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {row[0] for row in cursor.fetchall()}


def _get_existing_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    try:
        cursor = conn.execute(safe_sql.pragma_table_info(table))
        return {row[1] for row in cursor.fetchall()}
    except sqlite3.OperationalError:
        return set()


def _get_existing_indexes(conn: sqlite3.Connection) -> set[str]:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'index' AND name NOT LIKE 'sqlite_%'"
    )
    return {row[0] for row in cursor.fetchall()}


def _build_create_sql(table_name: str, table_def: dict) -> str:
    """Build a CREATE TABLE IF NOT EXISTS statement from a schema declaration."""
    parts = [f"    {col_name} {col_ddl}" for col_name, col_ddl in table_def["columns"]]
    for unique_cols in table_def.get("unique", []):
        parts.append(f"    UNIQUE({', '.join(unique_cols)})")
    body = ",\n".join(parts)
    return f"CREATE TABLE IF NOT EXISTS [{table_name}] (\n{body}\n)"


def _build_index_sql(idx_name: str, idx_table: str, idx_cols: str, idx_where: str | None) -> str:
    where_clause = f" WHERE {idx_where}" if idx_where else ""
    return f"CREATE INDEX IF NOT EXISTS [{idx_name}] ON [{idx_table}]({idx_cols}){where_clause}"


def _new_results(*buckets: str) -> dict:
    results: dict = {bucket: [] for bucket in buckets}
    results["errors"] = []
    return results


def _apply(conn: sqlite3.Connection, sql: str, label: str, results: dict, bucket: str) -> bool:
    """Run one DDL statement; record *label* under *bucket*, or the error."""
    try:
        conn.execute(sql)
    except sqlite3.OperationalError as e:
        err = f"{label}: {e}"
        results["errors"].append(err)
        logger.warning("schema_engine: %s", err)
        return False
    results[bucket].append(label.split(" ", 2)[-1])
    return True


def _create_indexes(conn: sqlite3.Connection, results: dict, skip: set[str], tables: set[str]) -> None:
    for idx_name, idx_table, idx_cols, idx_where in schema.INDEXES:
        if idx_name in skip or idx_table not in tables:
            continue
        _apply(
            conn,
            _build_index_sql(idx_name, idx_table, idx_cols, idx_where),
            f"CREATE INDEX {idx_name}",
            results,
            "indexes_created",
        )


def _stamp_version(conn: sqlite3.Connection, results: dict) -> dict:
    conn.execute(safe_sql.pragma_user_version_set(schema.SCHEMA_VERSION))
    results["schema_version"] = schema.SCHEMA_VERSION
    return results


def converge(conn: sqlite3.Connection) -> dict:
    """
    Bring an existing database up to schema.TABLES without losing data.

    Missing tables are created, missing columns added with ALTER TABLE,
    missing indexes created, then PRAGMA user_version is stamped. Failures
    are collected in results["errors"] rather than raised.
    """
    results = _new_results("tables_created", "columns_added", "indexes_created")
    present = _get_existing_tables(conn)

    for table_name, table_def in schema.TABLES.items():
        if table_name not in present:
            if _apply(
                conn,
                _build_create_sql(table_name, table_def),
                f"CREATE TABLE {table_name}",
                results,
                "tables_created",
            ):
                logger.info("schema_engine: created table %s", table_name)
            continue

        have = _get_existing_columns(conn, table_name)
        for col_name, col_ddl in table_def["columns"]:
            if col_name in have:
                continue
            if _apply(
                conn,
                f"ALTER TABLE [{table_name}] ADD COLUMN [{col_name}] {make_alter_safe(col_ddl)}",  # nosec B608
                f"ADD COLUMN {table_name}.{col_name}",
                results,
                "columns_added",
            ):
                logger.info("schema_engine: added column %s.%s", table_name, col_name)

    _create_indexes(conn, results, skip=_get_existing_indexes(conn), tables=_get_existing_tables(conn))
    return _stamp_version(conn, results)


def create_fresh(conn: sqlite3.Connection) -> dict:
    """
    Drop every table and create the declared schema from scratch.

    Use only for brand-new databases and test fixtures.
    """
    results = _new_results("tables_created", "indexes_created")

    for name in _get_existing_tables(conn):
        if not name.startswith("sqlite_"):
            conn.execute(f"DROP TABLE IF EXISTS [{safe_sql.validate_identifier(name)}]")  # nosec B608

    for table_name, table_def in schema.TABLES.items():
        _apply(
            conn,
            _build_create_sql(table_name, table_def),
            f"CREATE TABLE {table_name}",
            results,
            "tables_created",
        )

    _create_indexes(conn, results, skip=set(), tables=set(schema.TABLES))
    return _stamp_version(conn, results)
