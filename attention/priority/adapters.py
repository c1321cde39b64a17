"""
Source adapters: raw record dict -> PriorityItem.

Each adapter picks which raw fields feed which calculator and writes the
reasoning sentence and context labels. Adapters do no I/O; joined display
fields (project_name, company_name, ...) arrive on the record itself.
A missing date or priority maps to the calculator default, never to an
exception. Only a record without an id is rejected.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from attention.errors import MalformedRecordError
from attention.priority import calculators as calc
from attention.priority.config import PriorityConfig
from attention.priority.scoring import DimensionScores, aggregate, generate_signals
from attention.priority.types import IconType, PriorityItem, SourceType
from attention.time_utils import parse_timestamp

logger = logging.getLogger(__name__)


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def _sentence(parts: list[str], fallback: str) -> str:
    parts = [p for p in parts if p]
    if not parts:
        return fallback
    return ". ".join(parts) + "."


def _record_id(record: dict, source_type: SourceType) -> str:
    source_id = record.get("id")
    if source_id is None or str(source_id).strip() == "":
        raise MalformedRecordError(source_type.value, "missing id")
    return str(source_id)


def _is_snoozed(record: dict, now: datetime) -> bool:
    until = parse_timestamp(record.get("snoozed_until"))
    return until is not None and until > now


def due_phrase(days: int | None) -> str | None:
    """Human phrasing of a whole-day deadline distance."""
    if days is None:
        return None
    if days < 0:
        return f"Overdue by {_plural(-days, 'day')}"
    if days == 0:
        return "Due today"
    if days == 1:
        return "Due tomorrow"
    return f"Due in {days} days"


def _age_phrase(days: int | None, verb: str) -> str | None:
    if days is None:
        return None
    if days <= 0:
        return f"{verb} today"
    if days == 1:
        return f"{verb} yesterday"
    return f"{verb} {days} days ago"


def _deadline_flags(days: int | None) -> dict:
    return {
        "is_overdue": days is not None and days < 0,
        "is_due_today": days == 0,
        "is_due_soon": days is not None and 1 <= days <= 3,
    }


def _deadline_icon(days: int | None) -> IconType | None:
    if days is None:
        return None
    if days < 0:
        return IconType.OVERDUE
    if days == 0:
        return IconType.DUE_TODAY
    if days <= 3:
        return IconType.DUE_SOON
    return None


def _build(
    source_type: SourceType,
    source_id: str,
    scores: DimensionScores,
    config: PriorityConfig,
    descriptions: dict[str, str],
    **fields,
) -> PriorityItem:
    return PriorityItem(
        id=f"{source_type.value}-{source_id}",
        source_type=source_type,
        source_id=source_id,
        urgency_score=scores.urgency,
        importance_score=scores.importance,
        recency_score=scores.recency,
        commitment_score=scores.commitment,
        effort_score=scores.effort,
        priority_score=aggregate(scores, config),
        signals=generate_signals(scores, config, descriptions),
        **fields,
    )


# ────────────────────────────────────────────────────────────
# Adapters
# ────────────────────────────────────────────────────────────


def map_task(
    record: dict,
    config: PriorityConfig,
    now: datetime,
    available_minutes: int | None = None,
) -> PriorityItem:
    source_id = _record_id(record, SourceType.TASK)
    days = calc.days_until(record.get("scheduled_for"), now)
    priority = calc.as_word(record.get("priority")) or None

    scores = DimensionScores(
        urgency=calc.urgency_for_days_until(days),
        importance=calc.task_importance(priority),
        recency=calc.recency(record.get("last_touched_at"), now),
        effort=calc.task_effort(record.get("effort_minutes"), available_minutes),
    )

    linked_to = record.get("project_name") or record.get("company_name")
    reasoning = _sentence(
        [
            due_phrase(days),
            "High priority" if priority == "high" else None,
            f"Linked to {linked_to}" if linked_to else None,
        ],
        "Task needs attention.",
    )

    icon = _deadline_icon(days)
    if icon is None and priority == "high":
        icon = IconType.HIGH_IMPORTANCE

    labels = [label for label in (record.get("project_name"), record.get("company_name")) if label]
    if priority:
        labels.append(f"{priority.capitalize()} priority")

    return _build(
        SourceType.TASK,
        source_id,
        scores,
        config,
        {
            "urgency": due_phrase(days) or "No due date",
            "importance": f"Priority: {priority}" if priority else "No priority set",
            "recency": "Last touched",
            "effort": "Fits available time",
        },
        title=record.get("title") or "(untitled task)",
        subtitle=linked_to,
        description=record.get("description"),
        context_labels=labels,
        icon_type=icon,
        due_at=record.get("scheduled_for"),
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_completed=(record.get("status") or "") == "completed",
        is_snoozed=_is_snoozed(record, now),
        company_id=record.get("company_id"),
        company_name=record.get("company_name"),
        company_logo_url=record.get("company_logo_url"),
        project_id=record.get("project_id"),
        project_name=record.get("project_name"),
        project_color=record.get("project_color"),
        reasoning=reasoning,
        **_deadline_flags(days),
    )


def map_inbox_item(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.INBOX)
    is_read = _flag(record.get("is_read"))
    age = calc.days_since(record.get("received_at"), now)

    scores = DimensionScores(
        urgency=calc.inbox_urgency(record.get("received_at"), now, config),
        importance=calc.inbox_importance(is_read),
        recency=calc.recency(record.get("last_touched_at"), now),
    )
    received = _age_phrase(age, "Received")
    sender = record.get("from_name") or record.get("from_email")
    reasoning = _sentence(
        [received, None if is_read else "Unread", "Needs response or resolution"],
        "Message needs attention.",
    )

    return _build(
        SourceType.INBOX,
        source_id,
        scores,
        config,
        {
            "urgency": received or "Receipt time unknown",
            "importance": "Read" if is_read else "Unread",
            "recency": "Last touched",
        },
        title=record.get("subject") or "(no subject)",
        subtitle=sender,
        description=record.get("snippet"),
        context_labels=[label for label in (sender, record.get("company_name")) if label],
        icon_type=None if is_read else IconType.UNREAD_EMAIL,
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("received_at") or record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_completed=_flag(record.get("is_resolved")),
        is_snoozed=_is_snoozed(record, now),
        company_id=record.get("related_company_id"),
        company_name=record.get("company_name"),
        company_logo_url=record.get("company_logo_url"),
        reasoning=reasoning,
    )


def _attendee_count(attendees) -> int:
    if isinstance(attendees, list):
        return len(attendees)
    return 0


def _starts_in_phrase(start: datetime | None, now: datetime) -> str | None:
    if start is None:
        return None
    minutes = int((start - now).total_seconds() // 60)
    if minutes < 0:
        return "Already started"
    if minutes < 60:
        return f"Starts in {_plural(minutes, 'minute')}"
    hours = minutes // 60
    if hours < 24:
        return f"Starts in {_plural(hours, 'hour')}"
    return f"Starts in {_plural(hours // 24, 'day')}"


def map_calendar_event(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.CALENDAR_EVENT)
    start = parse_timestamp(record.get("start_time"))
    attendee_count = _attendee_count(record.get("attendees"))
    hours = calc.whole_hours_between(now, start) if start else None

    scores = DimensionScores(
        urgency=calc.calendar_urgency(record.get("start_time"), now),
        importance=calc.calendar_importance(),
        recency=calc.recency(record.get("last_touched_at"), now),
        commitment=calc.calendar_commitment(attendee_count),
    )
    starts_in = _starts_in_phrase(start, now)
    labels = [label for label in (record.get("location"), record.get("company_name")) if label]
    if attendee_count:
        labels.append(_plural(attendee_count, "attendee"))

    return _build(
        SourceType.CALENDAR_EVENT,
        source_id,
        scores,
        config,
        {
            "urgency": starts_in or "Start time unknown",
            "importance": "Calendar event",
            "recency": "Last touched",
            "commitment": f"{_plural(attendee_count, 'attendee')} expecting you",
        },
        title=record.get("title") or "(untitled event)",
        subtitle=record.get("location"),
        context_labels=labels,
        icon_type=IconType.UPCOMING_EVENT,
        event_start_at=record.get("start_time"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_due_today=start is not None and start.date() == now.date(),
        is_due_soon=hours is not None and 0 <= hours < 4,
        company_id=record.get("company_id"),
        company_name=record.get("company_name"),
        company_logo_url=record.get("company_logo_url"),
        reasoning=_sentence([starts_in, "Calendar event"], "Calendar event."),
    )


def map_commitment(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.COMMITMENT)
    direction = calc.as_word(record.get("direction")) or None
    urgency_word = calc.as_word(record.get("urgency")) or None
    deadline = calc.commitment_deadline(direction, record.get("due_at"), record.get("expected_by"))
    days = calc.days_until(deadline, now)
    person = record.get("person_name")
    is_vip = _flag(record.get("is_vip"))

    scores = DimensionScores(
        urgency=calc.commitment_urgency(
            direction, record.get("due_at"), record.get("expected_by"), urgency_word, now
        ),
        importance=calc.commitment_importance(direction, is_vip, urgency_word),
        recency=calc.recency(record.get("last_touched_at"), now),
        commitment=calc.commitment_weight(bool(person), record.get("company_type") == "portfolio"),
    )

    if direction == "owed_by_me":
        owed = "You owe this"
        subtitle = f"You owe {person}" if person else "You owe this"
    elif direction == "owed_to_me":
        owed = "Owed to you"
        subtitle = f"{person} owes you" if person else "Owed to you"
    else:
        owed, subtitle = None, person

    reasoning = _sentence(
        [owed, due_phrase(days), f"With {person}" if person else None],
        "Commitment needs attention.",
    )
    status = record.get("status") or "open"
    labels = [label for label in (person, record.get("company_name")) if label]
    if is_vip:
        labels.append("VIP")
    if urgency_word:
        labels.append(urgency_word.replace("_", " "))

    return _build(
        SourceType.COMMITMENT,
        source_id,
        scores,
        config,
        {
            "urgency": due_phrase(days) or "No deadline",
            "importance": owed or "Commitment",
            "recency": "Last touched",
            "commitment": f"Promise with {person}" if person else "Promise",
        },
        title=record.get("title") or "(untitled commitment)",
        subtitle=subtitle,
        description=record.get("description"),
        context_labels=labels,
        icon_type=IconType.COMMITMENT_BROKEN if status == "broken" else IconType.COMMITMENT,
        due_at=deadline,
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_completed=status in ("completed", "cancelled"),
        is_snoozed=_is_snoozed(record, now),
        company_id=record.get("company_id"),
        company_name=record.get("company_name"),
        reasoning=reasoning,
        **_deadline_flags(days),
    )


def map_portfolio_company(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.PORTFOLIO_COMPANY)
    quiet_for = calc.days_since(record.get("last_interaction_at"), now)
    open_tasks = calc.as_count(record.get("open_task_count"))
    is_stale = quiet_for is None or quiet_for >= config.company_stale_threshold

    scores = DimensionScores(
        urgency=calc.portfolio_urgency(record.get("last_interaction_at"), now, config),
        importance=calc.portfolio_importance(record.get("status"), open_tasks),
        recency=calc.recency(record.get("last_touched_at"), now),
    )
    interaction = "Never contacted" if quiet_for is None else f"No interaction in {_plural(quiet_for, 'day')}"
    reasoning = _sentence(
        [
            interaction if is_stale else None,
            f"{_plural(open_tasks, 'open task')}" if open_tasks else None,
        ],
        "Portfolio company check-in.",
    )

    return _build(
        SourceType.PORTFOLIO_COMPANY,
        source_id,
        scores,
        config,
        {
            "urgency": interaction,
            "importance": f"Status: {record.get('status') or 'unknown'}",
            "recency": "Last touched",
        },
        title=record.get("name") or "(unnamed company)",
        subtitle=record.get("primary_domain"),
        context_labels=[label for label in (record.get("status"),) if label],
        icon_type=IconType.STALE_COMPANY if is_stale else None,
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_snoozed=_is_snoozed(record, now),
        company_id=source_id,
        company_name=record.get("name"),
        company_logo_url=record.get("logo_url"),
        reasoning=reasoning,
    )


def map_pipeline_company(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.PIPELINE_COMPANY)
    close_in = calc.days_until(record.get("close_date"), now)
    contacted = calc.days_since(record.get("last_contacted_at"), now)
    top_of_mind = _flag(record.get("is_top_of_mind"))

    scores = DimensionScores(
        urgency=calc.pipeline_urgency(
            record.get("close_date"), record.get("last_contacted_at"), record.get("next_steps"), now, config
        ),
        importance=calc.pipeline_importance(record.get("status"), top_of_mind),
        recency=calc.recency(record.get("last_touched_at"), now),
    )

    if close_in is None:
        closing = None
    elif close_in < 0:
        closing = "Close date passed"
    else:
        closing = f"Closes in {_plural(close_in, 'day')}"
    contact = "Never contacted" if contacted is None else f"Last contacted {_plural(contacted, 'day')} ago"
    next_steps = record.get("next_steps")

    labels = [label for label in (record.get("status"),) if label]
    if top_of_mind:
        labels.append("Top of mind")

    return _build(
        SourceType.PIPELINE_COMPANY,
        source_id,
        scores,
        config,
        {
            "urgency": closing or contact,
            "importance": f"Status: {record.get('status') or 'unknown'}",
            "recency": "Last touched",
        },
        title=record.get("name") or "(unnamed company)",
        subtitle=record.get("primary_domain"),
        description=next_steps,
        context_labels=labels,
        icon_type=IconType.STALE_COMPANY if contacted is None or contacted >= config.company_stale_threshold else None,
        due_at=record.get("close_date"),
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_snoozed=_is_snoozed(record, now),
        company_id=source_id,
        company_name=record.get("name"),
        company_logo_url=record.get("logo_url"),
        reasoning=_sentence(
            [closing, contact, f"Next steps: {next_steps}" if next_steps else None],
            "Pipeline company needs follow-up.",
        ),
        **_deadline_flags(close_in),
    )


def map_reading_item(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.READING_ITEM)
    is_read = _flag(record.get("is_read"))
    age = calc.days_since(record.get("created_at"), now)

    scores = DimensionScores(
        urgency=calc.reading_urgency(record.get("created_at"), now),
        importance=calc.reading_importance(is_read, bool(record.get("project_id"))),
        recency=calc.recency(record.get("last_touched_at"), now),
    )
    added = _age_phrase(age, "Added")

    return _build(
        SourceType.READING_ITEM,
        source_id,
        scores,
        config,
        {
            "urgency": added or "Added date unknown",
            "importance": "Read" if is_read else "Unread",
            "recency": "Last touched",
        },
        title=record.get("title") or "(untitled reading)",
        subtitle=record.get("project_name") or record.get("url"),
        context_labels=[label for label in (record.get("project_name"),) if label],
        icon_type=None if is_read else IconType.UNREAD_READING,
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_completed=is_read,
        is_snoozed=_is_snoozed(record, now),
        project_id=record.get("project_id"),
        project_name=record.get("project_name"),
        project_color=record.get("project_color"),
        reasoning=_sentence([added, None if is_read else "Unread"], "Reading item."),
    )


def map_nonnegotiable(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.NONNEGOTIABLE)
    frequency = str(record.get("frequency") or "daily")
    reminder = record.get("reminder_time")

    scores = DimensionScores(
        urgency=calc.nonnegotiable_urgency(reminder, frequency, now),
        importance=calc.nonnegotiable_importance(_flag(record.get("is_active", True))),
        recency=calc.recency(record.get("last_touched_at"), now),
        commitment=calc.nonnegotiable_commitment(),
    )
    reminder_text = f"Reminder at {reminder}" if reminder else None

    return _build(
        SourceType.NONNEGOTIABLE,
        source_id,
        scores,
        config,
        {
            "urgency": reminder_text or f"{frequency.capitalize()} habit",
            "importance": "Non-negotiable",
            "recency": "Last touched",
            "commitment": "Commitment to yourself",
        },
        title=record.get("title") or "(untitled)",
        subtitle=frequency.capitalize(),
        context_labels=[frequency],
        icon_type=IconType.NONNEGOTIABLE,
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        reasoning=_sentence([reminder_text, f"{frequency.capitalize()} non-negotiable"], "Non-negotiable."),
    )


def map_project(record: dict, config: PriorityConfig, now: datetime) -> PriorityItem:
    source_id = _record_id(record, SourceType.PROJECT)
    days = calc.days_until(record.get("deadline"), now)
    health = calc.as_word(record.get("health")) or None

    scores = DimensionScores(
        urgency=calc.project_urgency(record.get("deadline"), now),
        importance=calc.project_importance(health),
        recency=calc.recency(record.get("last_touched_at"), now),
    )
    deadline = due_phrase(days)
    if deadline:
        deadline = deadline.replace("Due", "Deadline", 1)

    icon = _deadline_icon(days)
    if icon is None and health == "red":
        icon = IconType.HIGH_IMPORTANCE

    return _build(
        SourceType.PROJECT,
        source_id,
        scores,
        config,
        {
            "urgency": deadline or "No deadline",
            "importance": f"Health: {health}" if health else "Health not set",
            "recency": "Last touched",
        },
        title=record.get("name") or "(unnamed project)",
        subtitle=record.get("status"),
        context_labels=[label for label in (health, record.get("status")) if label],
        icon_type=icon,
        due_at=record.get("deadline"),
        snoozed_until=record.get("snoozed_until"),
        created_at=record.get("created_at"),
        last_touched_at=record.get("last_touched_at"),
        is_completed=(record.get("status") or "") == "completed",
        is_snoozed=_is_snoozed(record, now),
        project_id=source_id,
        project_name=record.get("name"),
        project_color=record.get("color"),
        reasoning=_sentence(
            [deadline, f"Health is {health}" if health in ("red", "yellow") else None],
            "Project check-in.",
        ),
        **_deadline_flags(days),
    )


Adapter = Callable[[dict, PriorityConfig, datetime], PriorityItem]

ADAPTERS: dict[SourceType, Adapter] = {
    SourceType.TASK: map_task,
    SourceType.INBOX: map_inbox_item,
    SourceType.CALENDAR_EVENT: map_calendar_event,
    SourceType.COMMITMENT: map_commitment,
    SourceType.PORTFOLIO_COMPANY: map_portfolio_company,
    SourceType.PIPELINE_COMPANY: map_pipeline_company,
    SourceType.READING_ITEM: map_reading_item,
    SourceType.NONNEGOTIABLE: map_nonnegotiable,
    SourceType.PROJECT: map_project,
}

_missing = set(SourceType) - set(ADAPTERS)
if _missing:
    raise ImportError(f"No priority adapter for source type(s): {sorted(m.value for m in _missing)}")


def map_to_priority_item(
    source_type: SourceType | str,
    record: dict,
    config: PriorityConfig,
    now: datetime,
    available_minutes: int | None = None,
) -> PriorityItem:
    source_type = SourceType.parse(source_type)
    if source_type is SourceType.TASK:
        return map_task(record, config, now, available_minutes)
    return ADAPTERS[source_type](record, config, now)
