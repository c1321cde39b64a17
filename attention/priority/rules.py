"""
Ranking and selection policy, plus the pre-score exclusion rules.

Selection, in order:
  1. drop items below config.min_score
  2. stable sort by priority_score, descending
  3. skip items past config.max_items_per_source for their source type
  4. truncate to config.max_items
"""

import logging
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime

from attention.priority import calculators as calc
from attention.priority.config import PriorityConfig
from attention.priority.types import PriorityItem, SourceType
from attention.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

OPEN_COMMITMENT_STATUSES = frozenset({"open", "waiting_on"})


# ────────────────────────────────────────────────────────────
# Exclusion rules: record -> reason string, or None to keep
# ────────────────────────────────────────────────────────────


def _exclude_task(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    if (record.get("status") or "") in ("completed", "cancelled"):
        return "completed"
    return None


def _exclude_inbox(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    if record.get("is_deleted"):
        return "deleted"
    if record.get("is_resolved"):
        return "resolved"
    return None


def _exclude_calendar(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    start = parse_timestamp(record.get("start_time"))
    if start is None:
        return None
    if start < now:
        return "already started"
    if calc.whole_hours_between(now, start) > config.calendar_upcoming_window:
        return "outside upcoming window"
    return None


def _exclude_commitment(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    status = record.get("status") or "open"
    if status not in OPEN_COMMITMENT_STATUSES:
        return f"commitment {status}"
    return None


def _exclude_portfolio(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    if calc.as_word(record.get("status")) in ("archived", "exited"):
        return "company archived"
    return None


def _exclude_pipeline(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    if calc.as_word(record.get("status")) == "passed":
        return "passed"
    return None


def _exclude_reading(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    return None


def _exclude_nonnegotiable(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    if not record.get("is_active", 1):
        return "inactive"
    return None


def _exclude_project(record: dict, config: PriorityConfig, now: datetime) -> str | None:
    if calc.as_word(record.get("status")) in ("completed", "archived"):
        return "project closed"
    return None


ExclusionRule = Callable[[dict, PriorityConfig, datetime], str | None]

EXCLUSION_RULES: dict[SourceType, ExclusionRule] = {
    SourceType.TASK: _exclude_task,
    SourceType.INBOX: _exclude_inbox,
    SourceType.CALENDAR_EVENT: _exclude_calendar,
    SourceType.COMMITMENT: _exclude_commitment,
    SourceType.PORTFOLIO_COMPANY: _exclude_portfolio,
    SourceType.PIPELINE_COMPANY: _exclude_pipeline,
    SourceType.READING_ITEM: _exclude_reading,
    SourceType.NONNEGOTIABLE: _exclude_nonnegotiable,
    SourceType.PROJECT: _exclude_project,
}

_missing = set(SourceType) - set(EXCLUSION_RULES)
if _missing:
    raise ImportError(f"No exclusion rule for source type(s): {sorted(m.value for m in _missing)}")


def exclusion_reason(
    source_type: SourceType, record: dict, config: PriorityConfig, now: datetime
) -> str | None:
    """Why a record should stay out of the queue, or None."""
    snoozed_until = parse_timestamp(record.get("snoozed_until"))
    if snoozed_until is not None and snoozed_until > now:
        return "snoozed"
    return EXCLUSION_RULES[source_type](record, config, now)


# ────────────────────────────────────────────────────────────
# Selection
# ────────────────────────────────────────────────────────────


def rank_items(items: Iterable[PriorityItem]) -> list[PriorityItem]:
    """Descending by score; equal scores keep their input order."""
    return sorted(items, key=lambda item: item.priority_score, reverse=True)


def select_top_items(items: Iterable[PriorityItem], config: PriorityConfig) -> list[PriorityItem]:
    items = list(items)
    eligible = [item for item in items if item.priority_score >= config.min_score]
    ranked = rank_items(eligible)

    selected: list[PriorityItem] = []
    per_source: Counter = Counter()
    cap = config.max_items_per_source
    for item in ranked:
        if cap is not None and per_source[item.source_type] >= cap:
            continue
        per_source[item.source_type] += 1
        selected.append(item)
        if len(selected) >= config.max_items:
            break

    if selected:
        selected[0] = replace(selected[0], is_top_priority=True)
    logger.debug(
        "Selected %d of %d items (%d above floor) with config %s",
        len(selected),
        len(items),
        len(eligible),
        config.name,
    )
    return selected


def source_distribution(items: Iterable[PriorityItem]) -> dict[str, int]:
    counts = Counter(item.source_type.value for item in items)
    return dict(sorted(counts.items()))


def score_summary(items: list[PriorityItem]) -> dict[str, float]:
    if not items:
        return {"avg": 0.0, "min": 0.0, "max": 0.0}
    scores = [item.priority_score for item in items]
    return {"avg": sum(scores) / len(scores), "min": min(scores), "max": max(scores)}


def validate_priority_item(item: PriorityItem) -> list[str]:
    """Return a list of problems; empty when the item is well-formed."""
    problems = []
    if not item.id or item.id != f"{item.source_type.value}-{item.source_id}":
        problems.append(f"id {item.id!r} does not match source")
    if not item.title:
        problems.append("missing title")
    for name in ("urgency_score", "importance_score", "recency_score", "commitment_score", "priority_score"):
        value = getattr(item, name)
        if not 0.0 <= value <= 1.0:
            problems.append(f"{name} out of range: {value}")
    if item.effort_score is not None and not 0.0 <= item.effort_score <= 1.0:
        problems.append(f"effort_score out of range: {item.effort_score}")
    if len(item.signals) < 2 or [s.source for s in item.signals[:2]] != ["urgency", "importance"]:
        problems.append("signals must start with urgency and importance")
    return problems
