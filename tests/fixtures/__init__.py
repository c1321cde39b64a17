"""
Test fixtures for deterministic testing.

This module provides:
- fixture_db: temp SQLite stores, a pinned NOW and source record factories
"""

from .fixture_db import NOW, USER, create_fixture_store, guard_no_live_db, seed, ts

__all__ = ["NOW", "USER", "create_fixture_store", "guard_no_live_db", "seed", "ts"]
