"""
Triage records: work items, entity links, item extracts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from attention.priority.types import SourceType
from attention.time_utils import parse_timestamp


class WorkItemStatus(str, Enum):
    PENDING = "pending"
    NEEDS_REVIEW = "needs_review"
    SNOOZED = "snoozed"
    TRUSTED = "trusted"
    IGNORED = "ignored"


class ReasonCode(str, Enum):
    UNLINKED_COMPANY = "unlinked_company"
    NO_NEXT_ACTION = "no_next_action"
    STALE = "stale"
    MISSING_SUMMARY = "missing_summary"


class LinkReason(str, Enum):
    MANUAL = "manual"
    AI_MATCH = "ai_match"
    TASK_CREATED = "task_created"
    DOMAIN_MATCH = "domain_match"
    DIRECT_LINK = "direct_link"


# Trust requires at least one of these
TRUST_CONDITIONS = ("entity_link", "item_extract", "ignored", "commitment_resolved")


@dataclass
class WorkItem:
    id: str
    created_by: str
    source_type: SourceType
    source_id: str
    status: WorkItemStatus
    reason_codes: list[str] = field(default_factory=list)
    priority: int = 0
    snooze_until: str | None = None
    trusted_at: str | None = None
    reviewed_at: str | None = None
    last_touched_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "WorkItem":
        return cls(
            id=row["id"],
            created_by=row["created_by"],
            source_type=SourceType.parse(row["source_type"]),
            source_id=row["source_id"],
            status=WorkItemStatus(row["status"]),
            reason_codes=list(row.get("reason_codes") or []),
            priority=row.get("priority") or 0,
            snooze_until=row.get("snooze_until"),
            trusted_at=row.get("trusted_at"),
            reviewed_at=row.get("reviewed_at"),
            last_touched_at=row.get("last_touched_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def effective_status(self, now) -> WorkItemStatus:
        """A snooze that has run out reads back as needs_review."""
        if self.status is WorkItemStatus.SNOOZED:
            until = parse_timestamp(self.snooze_until)
            if until is None or until <= now:
                return WorkItemStatus.NEEDS_REVIEW
        return self.status

    def to_dict(self, now=None) -> dict[str, Any]:
        status = self.effective_status(now) if now is not None else self.status
        return {
            "id": self.id,
            "created_by": self.created_by,
            "source_type": self.source_type.value,
            "source_id": self.source_id,
            "status": status.value,
            "stored_status": self.status.value,
            "reason_codes": list(self.reason_codes),
            "priority": self.priority,
            "snooze_until": self.snooze_until,
            "trusted_at": self.trusted_at,
            "reviewed_at": self.reviewed_at,
            "last_touched_at": self.last_touched_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class EntityLink:
    id: str
    created_by: str
    source_type: str
    source_id: str
    target_type: str
    target_id: str
    link_reason: str
    confidence: float | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "EntityLink":
        return cls(**{k: row.get(k) for k in cls.__dataclass_fields__})

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class ItemExtract:
    id: str
    created_by: str
    source_type: str
    source_id: str
    extract_type: str
    content: dict = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "ItemExtract":
        data = {k: row.get(k) for k in cls.__dataclass_fields__}
        if not isinstance(data["content"], dict):
            data["content"] = {"value": data["content"]}
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)
