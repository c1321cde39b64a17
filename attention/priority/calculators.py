"""
Dimension calculators.

Pure functions mapping raw record fields to a score in [0, 1]. Buckets are
ordered most-urgent-first and edge-inclusive as written. Whole-day and
whole-hour differences truncate toward zero, so "due in 23 hours" is day 0.

Every calculator takes ``now`` explicitly. An unparseable timestamp scores
as if the field were absent.
"""

import logging
import math
from datetime import datetime, timedelta

from attention.priority.config import PriorityConfig
from attention.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600

TASK_IMPORTANCE = {
    "high": 1.0,
    "medium": 0.6,
    "low": 0.3,
}
TASK_IMPORTANCE_DEFAULT = 0.5
TASK_URGENCY_UNDATED = 0.2

INBOX_IMPORTANCE_UNREAD = 0.9
INBOX_IMPORTANCE_READ = 0.7
CALENDAR_IMPORTANCE = 0.8

COMMITMENT_URGENCY_FACTORS = {
    "asap": 1.2,
    "today": 1.2,
    "when_possible": 0.8,
}
COMMITMENT_IMPORTANCE_BASE = {
    "owed_by_me": 0.7,
    "owed_to_me": 0.5,
}
COMMITMENT_IMPORTANCE_OTHER = 0.6
COMMITMENT_VIP_BONUS = 0.15
COMMITMENT_URGENCY_ADJUST = {
    "asap": 0.1,
    "today": 0.1,
    "when_possible": -0.05,
}

RECENCY_UNTOUCHED = 0.5

PORTFOLIO_IMPORTANCE = {
    "active": 0.8,
    "watching": 0.5,
    "exited": 0.2,
    "archived": 0.2,
}
PIPELINE_IMPORTANCE = {
    "active": 0.8,
    "interesting": 0.8,
    "new": 0.6,
    "to_share": 0.6,
}
PROJECT_IMPORTANCE = {
    "red": 0.9,
    "yellow": 0.7,
}


# ────────────────────────────────────────────────────────────
# Time helpers
# ────────────────────────────────────────────────────────────


def whole_days_between(start: datetime, end: datetime) -> int:
    """Signed whole days from *start* to *end*, truncated toward zero."""
    return math.trunc((end - start).total_seconds() / SECONDS_PER_DAY)


def whole_hours_between(start: datetime, end: datetime) -> int:
    """Signed whole hours from *start* to *end*, truncated toward zero."""
    return math.trunc((end - start).total_seconds() / SECONDS_PER_HOUR)


def days_until(value, now: datetime) -> int | None:
    moment = parse_timestamp(value)
    return whole_days_between(now, moment) if moment else None


def days_since(value, now: datetime) -> int | None:
    moment = parse_timestamp(value)
    return whole_days_between(moment, now) if moment else None


def hours_until(value, now: datetime) -> int | None:
    moment = parse_timestamp(value)
    return whole_hours_between(now, moment) if moment else None


def hours_since(value, now: datetime) -> int | None:
    moment = parse_timestamp(value)
    return whole_hours_between(moment, now) if moment else None


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def as_word(value) -> str:
    """Lower-cased text of an enum-like field; "" when absent. Tolerates non-string values."""
    if value is None:
        return ""
    return str(value).strip().lower()


def as_count(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug("Non-numeric count %r, using %d", value, default)
        return default


# ────────────────────────────────────────────────────────────
# Tasks
# ────────────────────────────────────────────────────────────


def urgency_for_days_until(days: int | None) -> float:
    """Shared deadline bucket used by tasks, commitments and projects."""
    if days is None:
        return TASK_URGENCY_UNDATED
    if days < 0:
        return min(1.0, 0.9 + 0.02 * abs(days))
    if days == 0:
        return 0.9
    if days == 1:
        return 0.7
    if days <= 3:
        return 0.5
    if days <= 7:
        return 0.3
    return 0.1


def task_urgency(scheduled_for, now: datetime) -> float:
    return urgency_for_days_until(days_until(scheduled_for, now))


def task_importance(priority: str | None) -> float:
    if not priority:
        return TASK_IMPORTANCE_DEFAULT
    return TASK_IMPORTANCE.get(as_word(priority), TASK_IMPORTANCE_DEFAULT)


def task_effort(effort_minutes, available_minutes) -> float | None:
    """Fit of a task into the time the user has; None when no budget is known."""
    if available_minutes is None:
        return None
    if not available_minutes or available_minutes <= 0:
        return 0.5
    if effort_minutes is None:
        return 0.3
    if effort_minutes > available_minutes:
        return 0.1
    ratio = effort_minutes / available_minutes
    if ratio >= 0.5:
        return 1.0
    if ratio >= 0.25:
        return 0.8
    return 0.6


# ────────────────────────────────────────────────────────────
# Inbox
# ────────────────────────────────────────────────────────────


def inbox_urgency(received_at, now: datetime, config: PriorityConfig) -> float:
    hours = hours_since(received_at, now)
    if hours is None:
        return 0.2
    if hours < config.inbox_urgent_window:
        return 1.0
    if hours < 24:
        return 0.8
    if hours < 48:
        return 0.6
    if hours < 72:
        return 0.4
    return 0.2


def inbox_importance(is_read: bool) -> float:
    return INBOX_IMPORTANCE_READ if is_read else INBOX_IMPORTANCE_UNREAD


# ────────────────────────────────────────────────────────────
# Calendar
# ────────────────────────────────────────────────────────────


def calendar_urgency(start_time, now: datetime) -> float:
    start = parse_timestamp(start_time)
    if start is None:
        return 0.2
    if start < now:
        return 0.0
    hours = whole_hours_between(now, start)
    if hours < 1:
        return 1.0
    if hours < 2:
        return 0.95
    if hours < 4:
        return 0.8
    if hours < 24:
        return 0.6
    if hours < 48:
        return 0.4
    return 0.2


def calendar_importance() -> float:
    # Fixed for now; no per-event heuristics yet.
    return CALENDAR_IMPORTANCE


def calendar_commitment(attendee_count: int) -> float:
    if attendee_count >= 5:
        return 1.0
    if attendee_count >= 2:
        return 0.9
    return 0.8


# ────────────────────────────────────────────────────────────
# Commitments
# ────────────────────────────────────────────────────────────


def commitment_deadline(direction: str | None, due_at, expected_by):
    """The date that matters: when I owe it, or when it is owed to me."""
    if direction == "owed_to_me":
        return expected_by
    return due_at


def commitment_urgency(direction: str | None, due_at, expected_by, urgency: str | None, now: datetime) -> float:
    base = urgency_for_days_until(days_until(commitment_deadline(direction, due_at, expected_by), now))
    factor = COMMITMENT_URGENCY_FACTORS.get(as_word(urgency), 1.0)
    return min(1.0, base * factor)


def commitment_importance(direction: str | None, is_vip: bool, urgency: str | None) -> float:
    score = COMMITMENT_IMPORTANCE_BASE.get(as_word(direction), COMMITMENT_IMPORTANCE_OTHER)
    if is_vip:
        score += COMMITMENT_VIP_BONUS
    score += COMMITMENT_URGENCY_ADJUST.get(as_word(urgency), 0.0)
    return clamp01(score)


def commitment_weight(has_person: bool, is_portfolio_company: bool) -> float:
    """How binding the promise is: named counterparties bind harder."""
    score = 0.95 if has_person else 0.85
    if is_portfolio_company:
        score += 0.05
    return clamp01(score)


# ────────────────────────────────────────────────────────────
# Recency
# ────────────────────────────────────────────────────────────


def recency(last_touched_at, now: datetime) -> float:
    days = days_since(last_touched_at, now)
    if days is None:
        return RECENCY_UNTOUCHED
    if days <= 0:
        return 1.0
    if days <= 1:
        return 0.8
    if days <= 3:
        return 0.5
    if days <= 7:
        return 0.3
    return 0.1


# ────────────────────────────────────────────────────────────
# Companies
# ────────────────────────────────────────────────────────────


def portfolio_urgency(last_interaction_at, now: datetime, config: PriorityConfig) -> float:
    days = days_since(last_interaction_at, now)
    if days is None:
        return 0.95
    if days >= 30:
        return 0.95
    if days >= 21:
        return 0.8
    if days >= config.company_stale_threshold:
        return 0.6
    if days >= 7:
        return 0.3
    return 0.1


def portfolio_importance(status: str | None, open_task_count: int = 0) -> float:
    score = PORTFOLIO_IMPORTANCE.get(as_word(status), 0.5)
    if open_task_count and open_task_count > 0:
        score += 0.1
    return clamp01(score)


def pipeline_urgency(close_date, last_contacted_at, next_steps, now: datetime, config: PriorityConfig) -> float:
    score = 0.3
    close_in = days_until(close_date, now)
    if close_in is not None:
        if close_in < 0:
            score = max(score, 0.95)
        elif close_in <= 7:
            score = max(score, 0.85)
        elif close_in <= 14:
            score = max(score, 0.7)

    contacted = days_since(last_contacted_at, now)
    if contacted is None:
        score = max(score, 0.7)
    else:
        if contacted >= config.company_stale_threshold:
            score = max(score, 0.8)
        elif contacted >= 7:
            score = max(score, 0.5)
        if next_steps and contacted >= 7:
            score = max(score, 0.75)
    return score


def pipeline_importance(status: str | None, is_top_of_mind: bool) -> float:
    status = as_word(status)
    if status == "passed":
        return 0.1
    score = PIPELINE_IMPORTANCE.get(status, 0.5)
    if is_top_of_mind:
        score += 0.2
    return clamp01(score)


# ────────────────────────────────────────────────────────────
# Reading, nonnegotiables, projects
# ────────────────────────────────────────────────────────────


def reading_urgency(created_at, now: datetime) -> float:
    days = days_since(created_at, now)
    if days is None:
        return 0.5
    if days >= 30:
        return 0.1
    if days >= 14:
        return 0.3
    if days >= 7:
        return 0.5
    if days >= 1:
        return 0.7
    return 0.9


def reading_importance(is_read: bool, has_project: bool) -> float:
    score = 0.4 if is_read else 0.6
    if has_project:
        score += 0.15
    return clamp01(score)


def reminder_moment(reminder_time: str | None, now: datetime) -> datetime | None:
    """Today's occurrence of an ``HH:MM`` reminder, in UTC."""
    if not reminder_time:
        return None
    try:
        hours, minutes = (int(part) for part in str(reminder_time).split(":")[:2])
        return now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    except ValueError:
        logger.debug("Unparseable reminder time %r", reminder_time)
        return None


def nonnegotiable_urgency(reminder_time: str | None, frequency: str | None, now: datetime) -> float:
    moment = reminder_moment(reminder_time, now)
    if moment is not None:
        hours = (moment - now) / timedelta(hours=1)
        if -4 < hours < 0:
            return 0.9
        if 0 <= hours < 2:
            return 0.8
        if 0 <= hours < 6:
            return 0.5
    return 0.6 if as_word(frequency) == "daily" else 0.4


def nonnegotiable_importance(is_active: bool) -> float:
    return 0.75 if is_active else 0.3


def nonnegotiable_commitment() -> float:
    return 0.9


def project_urgency(deadline, now: datetime) -> float:
    return urgency_for_days_until(days_until(deadline, now))


def project_importance(health: str | None) -> float:
    return PROJECT_IMPORTANCE.get(as_word(health), 0.5)
