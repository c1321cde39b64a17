"""
Store and schema convergence tests.
"""

import sqlite3

import pytest

from attention import db as db_module
from attention import safe_sql
from attention.schema import SCHEMA_VERSION
from attention.schema_engine import make_alter_safe
from attention.state_store import RecordStore, get_store, reset_store
from tests.fixtures import fixture_db as fx


class TestSchemaConvergence:
    def test_converge_is_idempotent(self, tmp_path):
        path = tmp_path / "a.db"
        first = db_module.ensure_schema(path)
        second = db_module.ensure_schema(path)

        assert "work_items" in first["tables_created"]
        assert second["tables_created"] == []
        assert second["columns_added"] == []
        with db_module.get_connection(path) as conn:
            assert db_module.get_schema_version(conn) == SCHEMA_VERSION

    def test_missing_columns_are_added(self, tmp_path):
        path = tmp_path / "old.db"
        conn = sqlite3.connect(str(path))
        conn.execute("CREATE TABLE tasks (id TEXT PRIMARY KEY, title TEXT)")
        conn.commit()
        conn.close()

        result = db_module.ensure_schema(path)

        assert "tasks" not in result["tables_created"]
        assert result["columns_added"]
        RecordStore(path).insert("tasks", fx.task())

    @pytest.mark.parametrize(
        "col_def,expected",
        [
            ("id TEXT PRIMARY KEY", "id TEXT"),
            ("priority INTEGER NOT NULL", "priority INTEGER NOT NULL DEFAULT ''"),
            ("status TEXT NOT NULL DEFAULT 'open'", "status TEXT NOT NULL DEFAULT 'open'"),
        ],
    )
    def test_make_alter_safe(self, col_def, expected):
        assert make_alter_safe(col_def) == expected


class TestSafeSql:
    @pytest.mark.parametrize("name", ["tasks; DROP TABLE x", "1abc", "", "a-b"])
    def test_rejects_unsafe_identifiers(self, name):
        with pytest.raises(ValueError):
            safe_sql.validate_identifier(name)

    def test_upsert_without_updates_does_nothing_on_conflict(self):
        sql = safe_sql.upsert("entity_links", ["id", "target_id"], ["id"], [])
        assert sql.endswith("ON CONFLICT(id) DO NOTHING")


class TestRecordStore:
    def test_transaction_rolls_back_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction() as s:
                s.insert("tasks", fx.task())
                raise RuntimeError("boom")
        assert store.get("tasks", "task-1") is None

    def test_json_columns_round_trip(self, store):
        store.insert("calendar_events", fx.calendar_event(attendees=[{"email": "a@acme.io"}]))
        assert store.get("calendar_events", "event-1")["attendees"] == [{"email": "a@acme.io"}]

    def test_find_validates_column_names(self, store):
        with pytest.raises(ValueError):
            store.find("tasks", {"id = id OR 1": "x"})

    def test_get_store_follows_home(self, isolated_home):
        first = get_store()
        assert first.db_path.startswith(str(isolated_home.resolve()))
        assert get_store() is first
        reset_store()
        assert get_store() is not first
