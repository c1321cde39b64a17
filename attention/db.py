"""
Centralized database access.

Single source of truth for:
- DB path resolution
- Connection factory
- Schema convergence (delegated to schema_engine)

No other module calls sqlite3.connect() directly.
"""

import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from attention import paths, schema, schema_engine

logger = logging.getLogger(__name__)


def get_db_path() -> Path:
    """
    Resolution order:
    1. ATTENTION_DB env var (explicit override)
    2. ~/.attention/data/attention.db
    """
    return paths.db_path()


def open_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Open a configured connection. The caller owns closing it."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    # isolation_level=None: transactions are opened explicitly with BEGIN
    conn = sqlite3.connect(str(path), timeout=30, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=30000")
    return conn


@contextmanager
def get_connection(db_path: str | Path | None = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Usage:
        with get_connection() as conn:
            conn.execute(...)
    """
    conn = open_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


def get_schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def ensure_schema(db_path: str | Path | None = None) -> dict:
    """Converge the database at *db_path* to the declared schema."""
    with get_connection(db_path) as conn:
        before = get_schema_version(conn)
        conn.execute("BEGIN IMMEDIATE")
        try:
            results = schema_engine.converge(conn)
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise

    if results["tables_created"] or results["columns_added"]:
        logger.info(
            "Schema converged v%d -> v%d: %d tables, %d columns added",
            before,
            schema.SCHEMA_VERSION,
            len(results["tables_created"]),
            len(results["columns_added"]),
        )
    for err in results["errors"]:
        logger.warning("Schema convergence error: %s", err)
    return results


def create_fresh(db_path: str | Path) -> dict:
    """Recreate the database at *db_path* from scratch (tests, `init --fresh`)."""
    with get_connection(db_path) as conn:
        return schema_engine.create_fresh(conn)
