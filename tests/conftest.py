"""
Test configuration: ensures repo root is in sys.path + determinism guards.

This allows tests to import from top-level packages (attention, api, cli).
Every test runs with ATTENTION_HOME pointed at its own tmp directory, and
sqlite3.connect refuses the real home database.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import attention.*, api.*, cli.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from attention.state_store import reset_store  # noqa: E402
from attention.triage import TriageStateMachine, WorkQueue  # noqa: E402
from tests.fixtures.fixture_db import NOW, create_fixture_store, guard_no_live_db  # noqa: E402

# =============================================================================
# DETERMINISM GUARD: Block live database access
# =============================================================================

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    guard_no_live_db(str(database))
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Point the process-wide store at a per-test home."""
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)
    home = tmp_path / "home"
    monkeypatch.setenv("ATTENTION_HOME", str(home))
    monkeypatch.delenv("ATTENTION_DB", raising=False)
    monkeypatch.delenv("ATTENTION_PRIORITY_CONFIG", raising=False)
    reset_store()
    yield home
    reset_store()


# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    return create_fixture_store(tmp_path / "attention_test.db")


@pytest.fixture
def machine(store):
    return TriageStateMachine(store)


@pytest.fixture
def work_queue(store):
    return WorkQueue(store)
