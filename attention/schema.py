"""
Declarative schema definition.

Every table, column and index the attention engine reads or writes lives
here. The schema_engine reads this module and converges any database to
match it.

Adding a column = add one line here. The engine handles the rest.

Column definitions use CREATE TABLE syntax. The schema_engine derives the
ALTER TABLE ADD COLUMN form (strips PK, adjusts NOT NULL, etc.).
"""

from collections import OrderedDict

# Bump when this file changes
SCHEMA_VERSION = 3

# =============================================================================
# Table Definitions
#
# Format: TABLES[name] = {"columns": [(col_name, col_ddl), ...],
#                         "unique": [(col, col, ...), ...]}
# =============================================================================

TABLES: dict[str, dict] = OrderedDict()

_TIMESTAMPS = [
    ("created_at", "TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"),
    ("updated_at", "TEXT"),
]

# ---------------------------------------------------------------------------
# Source records
# ---------------------------------------------------------------------------
TABLES["projects"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("name", "TEXT NOT NULL"),
        ("color", "TEXT"),
        ("status", "TEXT DEFAULT 'active'"),
        ("health", "TEXT"),
        ("deadline", "TEXT"),
        ("snoozed_until", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["companies"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("name", "TEXT NOT NULL"),
        ("logo_url", "TEXT"),
        ("primary_domain", "TEXT"),
        ("status", "TEXT DEFAULT 'active'"),
        ("last_interaction_at", "TEXT"),
        ("open_task_count", "INTEGER DEFAULT 0"),
        ("snoozed_until", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["pipeline_companies"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("name", "TEXT NOT NULL"),
        ("logo_url", "TEXT"),
        ("primary_domain", "TEXT"),
        ("status", "TEXT DEFAULT 'new'"),
        ("is_top_of_mind", "INTEGER DEFAULT 0"),
        ("close_date", "TEXT"),
        ("last_contacted_at", "TEXT"),
        ("next_steps", "TEXT"),
        ("snoozed_until", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["tasks"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("title", "TEXT NOT NULL"),
        ("description", "TEXT"),
        ("status", "TEXT DEFAULT 'pending'"),
        ("priority", "TEXT"),
        ("scheduled_for", "TEXT"),
        ("completed_at", "TEXT"),
        ("snoozed_until", "TEXT"),
        ("project_id", "TEXT"),
        ("company_id", "TEXT"),
        ("effort_minutes", "INTEGER"),
        ("is_quick_task", "INTEGER DEFAULT 0"),
        ("source", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["inbox_items"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("subject", "TEXT"),
        ("snippet", "TEXT"),
        ("from_name", "TEXT"),
        ("from_email", "TEXT"),
        ("received_at", "TEXT"),
        ("is_read", "INTEGER DEFAULT 0"),
        ("is_resolved", "INTEGER DEFAULT 0"),
        ("is_deleted", "INTEGER DEFAULT 0"),
        ("snoozed_until", "TEXT"),
        ("related_company_id", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["calendar_events"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("title", "TEXT"),
        ("location", "TEXT"),
        ("start_time", "TEXT"),
        ("end_time", "TEXT"),
        ("attendees", "TEXT"),  # JSON list of {email, name}
        ("company_id", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["commitments"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("title", "TEXT NOT NULL"),
        ("description", "TEXT"),
        ("direction", "TEXT NOT NULL DEFAULT 'owed_by_me'"),
        ("status", "TEXT DEFAULT 'open'"),
        ("urgency", "TEXT"),
        ("due_at", "TEXT"),
        ("expected_by", "TEXT"),
        ("person_id", "TEXT"),
        ("person_name", "TEXT"),
        ("is_vip", "INTEGER DEFAULT 0"),
        ("company_id", "TEXT"),
        ("company_name", "TEXT"),
        ("company_type", "TEXT"),
        ("task_id", "TEXT"),
        ("completed_at", "TEXT"),
        ("completed_via", "TEXT"),
        ("completion_notes", "TEXT"),
        ("delegated_to_person_id", "TEXT"),
        ("delegated_to_name", "TEXT"),
        ("delegated_at", "TEXT"),
        ("resolved_at", "TEXT"),
        ("snoozed_until", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["reading_items"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("title", "TEXT NOT NULL"),
        ("url", "TEXT"),
        ("is_read", "INTEGER DEFAULT 0"),
        ("project_id", "TEXT"),
        ("snoozed_until", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["nonnegotiables"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("title", "TEXT NOT NULL"),
        ("frequency", "TEXT DEFAULT 'daily'"),
        ("reminder_time", "TEXT"),
        ("is_active", "INTEGER DEFAULT 1"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
}

TABLES["notes"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("title", "TEXT"),
        ("content", "TEXT NOT NULL"),
        ("context_type", "TEXT"),
        ("context_id", "TEXT"),
        ("source_type", "TEXT"),
        ("source_id", "TEXT"),
        *_TIMESTAMPS,
    ],
}

# ---------------------------------------------------------------------------
# Triage
# ---------------------------------------------------------------------------
TABLES["work_items"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("source_type", "TEXT NOT NULL"),
        ("source_id", "TEXT NOT NULL"),
        ("status", "TEXT NOT NULL DEFAULT 'pending'"),
        ("reason_codes", "TEXT NOT NULL DEFAULT '[]'"),  # JSON list
        ("priority", "INTEGER NOT NULL DEFAULT 0"),
        ("snooze_until", "TEXT"),
        ("trusted_at", "TEXT"),
        ("reviewed_at", "TEXT"),
        ("last_touched_at", "TEXT"),
        *_TIMESTAMPS,
    ],
    "unique": [("source_type", "source_id", "created_by")],
}

TABLES["entity_links"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("source_type", "TEXT NOT NULL"),
        ("source_id", "TEXT NOT NULL"),
        ("target_type", "TEXT NOT NULL"),
        ("target_id", "TEXT NOT NULL"),
        ("link_reason", "TEXT NOT NULL DEFAULT 'manual'"),
        ("confidence", "REAL"),
        *_TIMESTAMPS,
    ],
    "unique": [("source_type", "source_id", "target_type", "target_id", "created_by")],
}

TABLES["item_extracts"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("created_by", "TEXT NOT NULL"),
        ("source_type", "TEXT NOT NULL"),
        ("source_id", "TEXT NOT NULL"),
        ("extract_type", "TEXT NOT NULL"),
        ("content", "TEXT NOT NULL DEFAULT '{}'"),  # JSON object
        *_TIMESTAMPS,
    ],
    "unique": [("created_by", "source_type", "source_id", "extract_type")],
}

# =============================================================================
# Indexes: (name, table, columns, where)
# =============================================================================
INDEXES: list[tuple[str, str, str, str | None]] = [
    ("idx_tasks_owner_status", "tasks", "created_by, status", None),
    ("idx_tasks_scheduled", "tasks", "scheduled_for", "scheduled_for IS NOT NULL"),
    ("idx_inbox_owner_received", "inbox_items", "created_by, received_at", None),
    ("idx_calendar_owner_start", "calendar_events", "created_by, start_time", None),
    ("idx_commitments_owner_status", "commitments", "created_by, status", None),
    ("idx_work_items_queue", "work_items", "created_by, status, priority", None),
    ("idx_entity_links_source", "entity_links", "created_by, source_type, source_id", None),
    ("idx_item_extracts_source", "item_extracts", "created_by, source_type, source_id", None),
]

# Columns holding JSON-encoded values; decoded on read by the record store.
JSON_COLUMNS: dict[str, tuple[str, ...]] = {
    "calendar_events": ("attendees",),
    "work_items": ("reason_codes",),
    "item_extracts": ("content",),
}
