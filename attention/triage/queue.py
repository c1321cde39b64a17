"""
Work queue: the triage surface's view of open work items.

Default listing shows needs_review items plus snoozed items whose snooze
has run out. Ordered by priority (highest first), then by age.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from attention.priority.types import SourceType
from attention.state_store import RecordStore
from attention.time_utils import utc_now
from attention.triage.links import EntityLinkRegistry, ExtractRegistry
from attention.triage.models import EntityLink, ItemExtract, WorkItem, WorkItemStatus

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (WorkItemStatus.NEEDS_REVIEW.value, WorkItemStatus.SNOOZED.value, WorkItemStatus.PENDING.value)


@dataclass
class WorkQueueEntry:
    work_item: WorkItem
    status: WorkItemStatus
    links: list[EntityLink] = field(default_factory=list)
    extracts: list[ItemExtract] = field(default_factory=list)
    one_liner: str | None = None

    @property
    def primary_link(self) -> EntityLink | None:
        return self.links[0] if self.links else None

    def to_dict(self, now: datetime) -> dict:
        primary = self.primary_link
        return {
            "work_item": self.work_item.to_dict(now),
            "status": self.status.value,
            "links": [link.to_dict() for link in self.links],
            "primary_link": primary.to_dict() if primary else None,
            "extracts": [extract.to_dict() for extract in self.extracts],
            "one_liner": self.one_liner,
        }


class WorkQueue:
    def __init__(self, store: RecordStore):
        self.store = store
        self.links = EntityLinkRegistry(store)
        self.extracts = ExtractRegistry(store)

    def _open_items(self, created_by: str) -> list[WorkItem]:
        with self.store.session() as s:
            rows = s.query(
                "SELECT * FROM work_items WHERE created_by = ? AND status IN (?, ?, ?) "
                "ORDER BY priority DESC, created_at, id",
                [created_by, *_OPEN_STATUSES],
                table="work_items",
            )
        return [WorkItem.from_row(row) for row in rows]

    def list_items(
        self,
        created_by: str,
        now: datetime | None = None,
        status: WorkItemStatus | str | None = None,
        source_types: Iterable[SourceType | str] | None = None,
        reason_codes: Iterable[str] | None = None,
        limit: int | None = None,
    ) -> list[WorkQueueEntry]:
        """
        status=None           needs_review + elapsed snoozes
        status=needs_review   same as None
        status=snoozed        still-snoozed items only
        status=pending        not yet enriched
        trusted or ignored raise ValueError; those items are closed
        """
        now = now or utc_now()
        wanted = WorkItemStatus(status) if status else WorkItemStatus.NEEDS_REVIEW
        if wanted.value not in _OPEN_STATUSES:
            raise ValueError(f"Work queue lists open items only; got status {wanted.value!r}")
        types = {SourceType.parse(t) for t in source_types} if source_types else None
        reasons = set(reason_codes) if reason_codes else None

        entries = []
        for item in self._open_items(created_by):
            if item.status is WorkItemStatus.SNOOZED:
                effective = item.effective_status(now)
                # Still-snoozed items only show when asked for explicitly
                if effective is not wanted:
                    continue
            elif item.status is not wanted:
                continue
            if types and item.source_type not in types:
                continue
            if reasons and not reasons.intersection(item.reason_codes):
                continue
            entries.append(item)
            if limit is not None and len(entries) >= limit:
                break

        return [self._entry(item, now) for item in entries]

    def _entry(self, item: WorkItem, now: datetime) -> WorkQueueEntry:
        with self.store.session() as s:
            args = (item.source_type.value, item.source_id, item.created_by)
            return WorkQueueEntry(
                work_item=item,
                status=item.effective_status(now),
                links=self.links.list_for(*args, session=s),
                extracts=self.extracts.list_for(*args, session=s),
                one_liner=self.extracts.one_liner(*args, session=s),
            )

    def counts(self, created_by: str, now: datetime | None = None) -> dict:
        now = now or utc_now()
        counts = {"needs_review": 0, "snoozed": 0, "pending": 0}
        for item in self._open_items(created_by):
            counts[item.effective_status(now).value] += 1
        counts["is_system_clear"] = counts["needs_review"] == 0 and counts["pending"] == 0
        return counts
