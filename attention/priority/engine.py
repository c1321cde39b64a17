"""
Priority queue builder.

Pipeline: raw records per source -> exclusion rules -> adapters -> selection.
One bad record is logged and skipped; it never blanks the queue.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from attention.errors import MalformedRecordError
from attention.priority.adapters import map_to_priority_item
from attention.priority.config import PriorityConfig
from attention.priority.rules import (
    exclusion_reason,
    score_summary,
    select_top_items,
    source_distribution,
    validate_priority_item,
)
from attention.priority.types import PriorityItem, SourceType
from attention.state_store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class PriorityQueue:
    config_name: str
    generated_at: str
    items: list[PriorityItem]
    all_items: list[PriorityItem] = field(default_factory=list)
    excluded: dict[str, str] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        return len(self.all_items)

    def debug_stats(self) -> dict:
        summary = score_summary(self.all_items)
        return {
            "total_count": self.total_count,
            "selected_count": len(self.items),
            "excluded_count": len(self.excluded),
            "skipped_count": len(self.skipped),
            "distribution": source_distribution(self.all_items),
            "avg_score": summary["avg"],
            "min_score": summary["min"],
            "max_score": summary["max"],
        }

    def to_dict(self, include_all: bool = False) -> dict:
        data = {
            "config": self.config_name,
            "generated_at": self.generated_at,
            "items": [item.to_dict() for item in self.items],
            "stats": self.debug_stats(),
        }
        if include_all:
            data["all_items"] = [item.to_dict() for item in self.all_items]
        return data


def build_priority_queue(
    records_by_source: Mapping[SourceType | str, Iterable[dict]],
    config: PriorityConfig,
    now: datetime,
    available_minutes: int | None = None,
) -> PriorityQueue:
    """Score every record and select the queue under *config* at *now*."""
    scored: list[PriorityItem] = []
    excluded: dict[str, str] = {}
    skipped: dict[str, str] = {}

    for raw_type, records in records_by_source.items():
        source_type = SourceType.parse(raw_type)
        for record in records:
            key = f"{source_type.value}-{record.get('id')}"
            context = {"source_type": source_type.value, "source_id": record.get("id")}
            try:
                reason = exclusion_reason(source_type, record, config, now)
                if reason:
                    excluded[key] = reason
                    continue
                item = map_to_priority_item(source_type, record, config, now, available_minutes)
            except MalformedRecordError as e:
                logger.warning("Skipping record: %s", e, extra=context)
                skipped[key] = e.reason
                continue
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping unreadable record %s: %s", key, e, exc_info=True, extra=context)
                skipped[key] = f"unreadable record: {e}"
                continue
            problems = validate_priority_item(item)
            if problems:
                logger.warning(
                    "Skipping invalid priority item %s: %s", item.id, "; ".join(problems), extra=context
                )
                skipped[item.id] = "; ".join(problems)
                continue
            scored.append(item)

    selected = select_top_items(scored, config)
    if selected:
        top = selected[0]
        scored = [top if item.id == top.id else item for item in scored]
    queue = PriorityQueue(
        config_name=config.name,
        generated_at=now.isoformat(),
        items=selected,
        all_items=scored,
        excluded=excluded,
        skipped=skipped,
    )
    logger.debug("Priority queue stats: %s", queue.debug_stats())
    return queue


# ────────────────────────────────────────────────────────────
# Store-backed reading
# ────────────────────────────────────────────────────────────

_SOURCE_QUERIES: dict[SourceType, tuple[str, str]] = {
    SourceType.TASK: (
        "tasks",
        "SELECT t.*, p.name AS project_name, p.color AS project_color, "
        "c.name AS company_name, c.logo_url AS company_logo_url "
        "FROM tasks t "
        "LEFT JOIN projects p ON p.id = t.project_id "
        "LEFT JOIN companies c ON c.id = t.company_id "
        "WHERE t.created_by = ? ORDER BY t.created_at, t.id",
    ),
    SourceType.INBOX: (
        "inbox_items",
        "SELECT i.*, c.name AS company_name, c.logo_url AS company_logo_url "
        "FROM inbox_items i "
        "LEFT JOIN companies c ON c.id = i.related_company_id "
        "WHERE i.created_by = ? ORDER BY i.received_at, i.id",
    ),
    SourceType.CALENDAR_EVENT: (
        "calendar_events",
        "SELECT e.*, c.name AS company_name, c.logo_url AS company_logo_url "
        "FROM calendar_events e "
        "LEFT JOIN companies c ON c.id = e.company_id "
        "WHERE e.created_by = ? ORDER BY e.start_time, e.id",
    ),
    SourceType.COMMITMENT: (
        "commitments",
        "SELECT * FROM commitments WHERE created_by = ? ORDER BY created_at, id",
    ),
    SourceType.PORTFOLIO_COMPANY: (
        "companies",
        "SELECT * FROM companies WHERE created_by = ? ORDER BY name, id",
    ),
    SourceType.PIPELINE_COMPANY: (
        "pipeline_companies",
        "SELECT * FROM pipeline_companies WHERE created_by = ? ORDER BY name, id",
    ),
    SourceType.READING_ITEM: (
        "reading_items",
        "SELECT r.*, p.name AS project_name, p.color AS project_color "
        "FROM reading_items r "
        "LEFT JOIN projects p ON p.id = r.project_id "
        "WHERE r.created_by = ? ORDER BY r.created_at, r.id",
    ),
    SourceType.NONNEGOTIABLE: (
        "nonnegotiables",
        "SELECT * FROM nonnegotiables WHERE created_by = ? ORDER BY created_at, id",
    ),
    SourceType.PROJECT: (
        "projects",
        "SELECT * FROM projects WHERE created_by = ? ORDER BY created_at, id",
    ),
}

_missing = set(SourceType) - set(_SOURCE_QUERIES)
if _missing:
    raise ImportError(f"No source query for source type(s): {sorted(m.value for m in _missing)}")


class SourceReader:
    """Read capability over the raw source tables, scoped to one owner."""

    def __init__(self, store: RecordStore):
        self.store = store

    def read(self, source_type: SourceType, created_by: str) -> list[dict]:
        table, sql = _SOURCE_QUERIES[source_type]
        with self.store.session() as s:
            return s.query(sql, [created_by], table=table)

    def read_all(
        self, created_by: str, source_types: Iterable[SourceType] | None = None
    ) -> dict[SourceType, list[dict]]:
        wanted = list(source_types) if source_types else list(SourceType)
        return {source_type: self.read(source_type, created_by) for source_type in wanted}


class PriorityService:
    """Builds a user's ranked queue from the record store."""

    def __init__(self, store: RecordStore):
        self.reader = SourceReader(store)

    def build_queue(
        self,
        created_by: str,
        config: PriorityConfig,
        now: datetime | None = None,
        source_types: Iterable[SourceType] | None = None,
        available_minutes: int | None = None,
    ) -> PriorityQueue:
        now = now or datetime.now(UTC)
        records = self.reader.read_all(created_by, source_types)
        queue = build_priority_queue(records, config, now, available_minutes)
        logger.info(
            "Built priority queue for %s: %d of %d items (config %s)",
            created_by,
            len(queue.items),
            queue.total_count,
            config.name,
            extra={"created_by": created_by, "config": config.name},
        )
        return queue
