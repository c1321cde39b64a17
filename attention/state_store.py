"""
Record store: the one place the engine reads and writes rows.

Every component goes through a ``Session``. Plain sessions autocommit each
statement; ``RecordStore.transaction()`` wraps a read-check-write sequence in
a single ``BEGIN IMMEDIATE`` transaction so concurrent writers serialize on
the database lock instead of interleaving.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from attention import db as db_module
from attention import safe_sql
from attention.schema import JSON_COLUMNS

logger = logging.getLogger(__name__)


def _encode(value: Any) -> Any:
    if isinstance(value, dict | list | tuple):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _decode_row(table: str, row: sqlite3.Row | None) -> dict | None:
    if row is None:
        return None
    data = dict(row)
    for col in JSON_COLUMNS.get(table, ()):
        raw = data.get(col)
        if isinstance(raw, str):
            try:
                data[col] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Undecodable JSON in %s.%s (id=%s)", table, col, data.get("id"))
    return data


class Session:
    """Row-level operations bound to one open connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(self, table: str, data: dict) -> str:
        """Insert a row. Returns its id."""
        columns = list(data.keys())
        self.conn.execute(safe_sql.insert(table, columns), [_encode(v) for v in data.values()])
        return data.get("id", "")

    def upsert(
        self,
        table: str,
        data: dict,
        conflict_columns: Iterable[str],
        update_columns: Iterable[str],
    ) -> None:
        columns = list(data.keys())
        sql = safe_sql.upsert(table, columns, list(conflict_columns), list(update_columns))
        self.conn.execute(sql, [_encode(v) for v in data.values()])

    def get(self, table: str, id: str) -> dict | None:
        row = self.conn.execute(safe_sql.select(table, where="id = ?"), [id]).fetchone()
        return _decode_row(table, row)

    def find_one(self, table: str, where: dict) -> dict | None:
        rows = self.find(table, where, limit=1)
        return rows[0] if rows else None

    def find(
        self,
        table: str,
        where: dict | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Equality-filtered select. Keys of *where* are validated column names."""
        where = where or {}
        clause = safe_sql.where_and([f"{safe_sql.validate_identifier(k)} = ?" for k in where])
        suffix = f"LIMIT {int(limit)}" if limit is not None else ""
        sql = safe_sql.select(table, where=clause or None, order_by=order_by, suffix=suffix)
        rows = self.conn.execute(sql, [_encode(v) for v in where.values()]).fetchall()
        return [_decode_row(table, row) for row in rows]

    def update(self, table: str, id: str, data: dict) -> bool:
        if not data:
            return False
        values = [_encode(v) for v in data.values()]
        values.append(id)
        result = self.conn.execute(safe_sql.update(table, list(data.keys())), values)
        return result.rowcount > 0

    def query(self, sql: str, params: list | None = None, table: str | None = None) -> list[dict]:
        """Execute a raw parameterized query. *table* enables JSON decoding."""
        rows = self.conn.execute(sql, params or []).fetchall()
        if table:
            return [_decode_row(table, row) for row in rows]
        return [dict(row) for row in rows]

    def count(self, table: str, where: str | None = None, params: list | None = None) -> int:
        row = self.conn.execute(safe_sql.select_count(table, where=where), params or []).fetchone()
        return row["c"] if row else 0


class RecordStore:
    """
    SQLite-backed store. Instantiate with an explicit path for tests, or use
    ``get_store()`` for the process-wide default.
    """

    def __init__(self, db_path: str | Path | None = None, converge: bool = True):
        self.db_path = str(db_path or db_module.get_db_path())
        if converge:
            db_module.ensure_schema(self.db_path)
        logger.info("RecordStore ready, DB path: %s", self.db_path)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Autocommit session: each statement is its own transaction."""
        with db_module.get_connection(self.db_path) as conn:
            yield Session(conn)

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Atomic session. Commits on success, rolls back on any exception."""
        with db_module.get_connection(self.db_path) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield Session(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    # Convenience wrappers for one-off calls

    def insert(self, table: str, data: dict) -> str:
        with self.session() as s:
            return s.insert(table, data)

    def insert_many(self, table: str, items: list[dict]) -> int:
        if not items:
            return 0
        with self.transaction() as s:
            for item in items:
                s.insert(table, item)
        return len(items)

    def get(self, table: str, id: str) -> dict | None:
        with self.session() as s:
            return s.get(table, id)

    def find(self, table: str, where: dict | None = None, order_by: str | None = None) -> list[dict]:
        with self.session() as s:
            return s.find(table, where, order_by=order_by)

    def update(self, table: str, id: str, data: dict) -> bool:
        with self.session() as s:
            return s.update(table, id, data)

    def count(self, table: str, where: str | None = None, params: list | None = None) -> int:
        with self.session() as s:
            return s.count(table, where, params)


_store: RecordStore | None = None
_store_lock = threading.Lock()


def get_store(db_path: str | Path | None = None) -> RecordStore:
    """Get or create the process-wide store."""
    global _store
    if _store is None or (db_path is not None and str(db_path) != _store.db_path):
        with _store_lock:
            if _store is None or (db_path is not None and str(db_path) != _store.db_path):
                _store = RecordStore(db_path)
    return _store


def reset_store() -> None:
    """Forget the process-wide store (tests, path changes)."""
    global _store
    with _store_lock:
        _store = None
