"""
Core types for the priority queue.

SourceType is a closed set: the adapter and exclusion tables in this package
are checked against it at import time, so a new member without a mapping
fails on import rather than falling through at runtime.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SourceType(str, Enum):
    TASK = "task"
    INBOX = "inbox"
    CALENDAR_EVENT = "calendar_event"
    COMMITMENT = "commitment"
    PORTFOLIO_COMPANY = "portfolio_company"
    PIPELINE_COMPANY = "pipeline_company"
    READING_ITEM = "reading_item"
    NONNEGOTIABLE = "nonnegotiable"
    PROJECT = "project"

    @classmethod
    def parse(cls, value: "str | SourceType") -> "SourceType":
        """Accept enum members or their string values; raise ValueError otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown source type {value!r} (expected one of: {allowed})") from None


# Raw table each source type is read from
SOURCE_TABLES: dict[SourceType, str] = {
    SourceType.TASK: "tasks",
    SourceType.INBOX: "inbox_items",
    SourceType.CALENDAR_EVENT: "calendar_events",
    SourceType.COMMITMENT: "commitments",
    SourceType.PORTFOLIO_COMPANY: "companies",
    SourceType.PIPELINE_COMPANY: "pipeline_companies",
    SourceType.READING_ITEM: "reading_items",
    SourceType.NONNEGOTIABLE: "nonnegotiables",
    SourceType.PROJECT: "projects",
}


class IconType(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due-today"
    DUE_SOON = "due-soon"
    STALE_COMPANY = "stale-company"
    UNREAD_EMAIL = "unread-email"
    UPCOMING_EVENT = "upcoming-event"
    UNREAD_READING = "unread-reading"
    NONNEGOTIABLE = "nonnegotiable"
    COMMITMENT = "commitment"
    COMMITMENT_BROKEN = "commitment-broken"
    HIGH_IMPORTANCE = "high-importance"


@dataclass(frozen=True)
class PrioritySignal:
    """One explanatory factor. ``weight`` carries the dimension score."""

    source: str
    weight: float
    description: str

    def to_dict(self) -> dict:
        return {"source": self.source, "weight": self.weight, "description": self.description}


@dataclass
class PriorityItem:
    """A normalized, scored record from any source."""

    id: str
    source_type: SourceType
    source_id: str
    title: str
    urgency_score: float
    importance_score: float
    recency_score: float
    commitment_score: float
    priority_score: float
    reasoning: str
    subtitle: str | None = None
    description: str | None = None
    context_labels: list[str] = field(default_factory=list)
    icon_type: IconType | None = None
    effort_score: float | None = None

    due_at: str | None = None
    event_start_at: str | None = None
    snoozed_until: str | None = None
    created_at: str | None = None
    last_touched_at: str | None = None

    is_overdue: bool = False
    is_due_today: bool = False
    is_due_soon: bool = False
    is_completed: bool = False
    is_snoozed: bool = False
    is_top_priority: bool = False

    company_id: str | None = None
    company_name: str | None = None
    company_logo_url: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    project_color: str | None = None

    signals: list[PrioritySignal] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """camelCase payload as rendered by the UI."""
        return {
            "id": self.id,
            "sourceType": self.source_type.value,
            "sourceId": self.source_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "description": self.description,
            "contextLabels": list(self.context_labels),
            "iconType": self.icon_type.value if self.icon_type else None,
            "urgencyScore": self.urgency_score,
            "importanceScore": self.importance_score,
            "recencyScore": self.recency_score,
            "commitmentScore": self.commitment_score,
            "effortScore": self.effort_score,
            "priorityScore": self.priority_score,
            "dueAt": self.due_at,
            "eventStartAt": self.event_start_at,
            "snoozedUntil": self.snoozed_until,
            "createdAt": self.created_at,
            "lastTouchedAt": self.last_touched_at,
            "isOverdue": self.is_overdue,
            "isDueToday": self.is_due_today,
            "isDueSoon": self.is_due_soon,
            "isCompleted": self.is_completed,
            "isSnoozed": self.is_snoozed,
            "isTopPriority": self.is_top_priority,
            "companyId": self.company_id,
            "companyName": self.company_name,
            "companyLogoUrl": self.company_logo_url,
            "projectId": self.project_id,
            "projectName": self.project_name,
            "projectColor": self.project_color,
            "reasoning": self.reasoning,
            "signals": [s.to_dict() for s in self.signals],
        }
