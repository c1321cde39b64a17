"""
Triage state machine.

    pending -> needs_review -> trusted | ignored | snoozed

A snoozed item reads back as needs_review once its snooze_until passes;
nothing is scheduled, the check happens on read.

mark_trusted is guarded: the item needs an entity link, an item extract,
an explicit no-action decision (status ignored) or, for commitments, a
resolved commitment. The guard check and the status write share one
BEGIN IMMEDIATE transaction, so a concurrent writer cannot slip a status
flip past a stale check.
"""

import logging
import uuid
from datetime import datetime

from attention.errors import SourceNotFoundError, TrustGuardViolation, WorkItemNotFoundError
from attention.priority.config import V1_CONFIG, PriorityConfig
from attention.priority.types import SOURCE_TABLES, SourceType
from attention.state_store import RecordStore, Session
from attention.time_utils import format_timestamp, parse_timestamp, utc_now
from attention.triage import enrichment
from attention.triage.links import (
    SUMMARY_EXTRACT,
    EntityLinkRegistry,
    ExtractLookup,
    ExtractRegistry,
)
from attention.triage.models import (
    EntityLink,
    ItemExtract,
    LinkReason,
    ReasonCode,
    WorkItem,
    WorkItemStatus,
)

logger = logging.getLogger(__name__)

RESOLVED_COMMITMENT_STATUSES = frozenset({"completed", "delegated", "broken", "cancelled"})
TASK_PRIORITIES = ("high", "medium", "low")


class TriageStateMachine:
    def __init__(
        self,
        store: RecordStore,
        extract_lookup: ExtractLookup | None = None,
        config: PriorityConfig = V1_CONFIG,
    ):
        self.store = store
        self.config = config
        self.links = EntityLinkRegistry(store)
        self.extracts = ExtractRegistry(store)
        self.extract_lookup = extract_lookup or self.extracts

    # ==================== Loading ====================

    def load_in(self, s: Session, work_item_id: str) -> WorkItem:
        row = s.get("work_items", work_item_id)
        if row is None:
            raise WorkItemNotFoundError(work_item_id)
        return WorkItem.from_row(row)

    def _load_source(self, s: Session, source_type: SourceType, source_id: str, created_by: str) -> dict:
        row = s.find_one(SOURCE_TABLES[source_type], {"id": source_id, "created_by": created_by})
        if row is None:
            raise SourceNotFoundError(source_type.value, source_id)
        return row

    def _update(self, s: Session, item: WorkItem, now: datetime, **changes) -> WorkItem:
        stamp = format_timestamp(now)
        changes.setdefault("updated_at", stamp)
        s.update("work_items", item.id, changes)
        return self.load_in(s, item.id)

    def get_work_item(self, work_item_id: str) -> WorkItem:
        with self.store.session() as s:
            return self.load_in(s, work_item_id)

    def find_work_item(self, source_type: SourceType | str, source_id: str, created_by: str) -> WorkItem | None:
        source_type = SourceType.parse(source_type)
        with self.store.session() as s:
            row = s.find_one(
                "work_items",
                {"source_type": source_type.value, "source_id": source_id, "created_by": created_by},
            )
        return WorkItem.from_row(row) if row else None

    # ==================== Observation ====================

    def ensure_work_item(
        self,
        source_type: SourceType | str,
        source_id: str,
        created_by: str,
        now: datetime | None = None,
    ) -> WorkItem:
        """
        Return the work item for a source record, creating it on first sight.

        A new item is written as pending, enriched deterministically, then
        moved to needs_review with its reason codes and confident links.
        Existing items are returned untouched.
        """
        source_type = SourceType.parse(source_type)
        now = now or utc_now()
        stamp = format_timestamp(now)

        with self.store.transaction() as s:
            record = self._load_source(s, source_type, source_id, created_by)
            existing = s.find_one(
                "work_items",
                {"source_type": source_type.value, "source_id": source_id, "created_by": created_by},
            )
            if existing:
                return WorkItem.from_row(existing)

            item_id = uuid.uuid4().hex
            s.insert(
                "work_items",
                {
                    "id": item_id,
                    "created_by": created_by,
                    "source_type": source_type.value,
                    "source_id": source_id,
                    "status": WorkItemStatus.PENDING.value,
                    "reason_codes": [],
                    "priority": 0,
                    "last_touched_at": stamp,
                    "created_at": stamp,
                    "updated_at": stamp,
                },
            )

            result = enrichment.enrich(source_type, record, s, created_by, now, self.config)
            for proposed in result.links:
                self.links.link(
                    created_by,
                    source_type.value,
                    source_id,
                    proposed.target_type,
                    proposed.target_id,
                    proposed.link_reason,
                    proposed.confidence,
                    now=now,
                    session=s,
                )
            s.update(
                "work_items",
                item_id,
                {
                    "status": WorkItemStatus.NEEDS_REVIEW.value,
                    "reason_codes": result.reason_codes,
                    "priority": result.priority,
                    "updated_at": stamp,
                },
            )
            item = self.load_in(s, item_id)

        logger.info(
            "Work item %s created for %s/%s: reasons=%s",
            item.id,
            source_type.value,
            source_id,
            item.reason_codes,
            extra={"work_item_id": item.id, "source_type": source_type.value, "created_by": created_by},
        )
        return item

    # ==================== Transitions ====================

    def snooze(self, work_item_id: str, until: datetime | str, now: datetime | None = None) -> WorkItem:
        now = now or utc_now()
        until_dt = parse_timestamp(until)
        if until_dt is None:
            raise ValueError(f"Invalid snooze_until: {until!r}")
        with self.store.transaction() as s:
            item = self.load_in(s, work_item_id)
            item = self._update(
                s,
                item,
                now,
                status=WorkItemStatus.SNOOZED.value,
                snooze_until=format_timestamp(until_dt),
                last_touched_at=format_timestamp(now),
            )
        logger.info("Work item %s snoozed until %s", item.id, item.snooze_until)
        return item

    def no_action(self, work_item_id: str, now: datetime | None = None) -> WorkItem:
        """Explicit "nothing to do here": ignored, and clearable from then on."""
        now = now or utc_now()
        stamp = format_timestamp(now)
        with self.store.transaction() as s:
            item = self.load_in(s, work_item_id)
            item = self._update(
                s,
                item,
                now,
                status=WorkItemStatus.IGNORED.value,
                reviewed_at=stamp,
                last_touched_at=stamp,
                snooze_until=None,
            )
        logger.info("Work item %s marked no-action", item.id, extra={"work_item_id": item.id})
        return item

    def satisfied_trust_conditions(self, s: Session, item: WorkItem) -> list[str]:
        satisfied = []
        if self.links.exists(item.source_type.value, item.source_id, item.created_by, session=s):
            satisfied.append("entity_link")
        if self.extract_lookup.has_extract(item.source_type.value, item.source_id, item.created_by, session=s):
            satisfied.append("item_extract")
        if item.status is WorkItemStatus.IGNORED:
            satisfied.append("ignored")
        if item.source_type is SourceType.COMMITMENT:
            commitment = s.find_one("commitments", {"id": item.source_id, "created_by": item.created_by})
            if commitment and commitment.get("status") in RESOLVED_COMMITMENT_STATUSES:
                satisfied.append("commitment_resolved")
        return satisfied

    def _trust_conditions(self, item: WorkItem) -> list[str]:
        conditions = ["entity_link", "item_extract", "ignored"]
        if item.source_type is SourceType.COMMITMENT:
            conditions.append("commitment_resolved")
        return conditions

    def mark_trusted_in(self, s: Session, work_item_id: str, now: datetime) -> WorkItem:
        """Guarded trust transition inside a caller-owned transaction."""
        item = self.load_in(s, work_item_id)
        if not self.satisfied_trust_conditions(s, item):
            missing = self._trust_conditions(item)
            logger.warning(
                "Trust refused for work item %s: missing %s",
                item.id,
                ", ".join(missing),
                extra={"work_item_id": item.id, "source_type": item.source_type.value},
            )
            raise TrustGuardViolation(item.id, missing)
        stamp = format_timestamp(now)
        return self._update(
            s,
            item,
            now,
            status=WorkItemStatus.TRUSTED.value,
            trusted_at=stamp,
            reviewed_at=stamp,
            last_touched_at=stamp,
            snooze_until=None,
        )

    def mark_trusted(self, work_item_id: str, now: datetime | None = None) -> WorkItem:
        now = now or utc_now()
        with self.store.transaction() as s:
            item = self.mark_trusted_in(s, work_item_id, now)
        logger.info("Work item %s trusted", item.id, extra={"work_item_id": item.id})
        return item

    # ==================== Actions that satisfy the guard ====================

    def link_entity(
        self,
        work_item_id: str,
        target_type: str,
        target_id: str,
        link_reason: LinkReason | str = LinkReason.MANUAL,
        confidence: float | None = None,
        now: datetime | None = None,
    ) -> EntityLink:
        """Upsert a link and drop unlinked_company and stale. Status is unchanged."""
        if not target_type or not target_id:
            raise ValueError("target_type and target_id are required")
        now = now or utc_now()
        with self.store.transaction() as s:
            item = self.load_in(s, work_item_id)
            link = self.links.link(
                item.created_by,
                item.source_type.value,
                item.source_id,
                target_type,
                target_id,
                link_reason,
                confidence,
                now=now,
                session=s,
            )
            self._update(
                s,
                item,
                now,
                reason_codes=_without(item.reason_codes, ReasonCode.UNLINKED_COMPANY, ReasonCode.STALE),
                last_touched_at=format_timestamp(now),
            )
        logger.info("Work item %s linked to %s/%s", work_item_id, target_type, target_id)
        return link

    def create_task_from_suggestion(
        self,
        work_item_id: str,
        title: str,
        description: str | None = None,
        priority: str = "medium",
        project_id: str | None = None,
        scheduled_for: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Create the task, link it to the item and drop no_next_action and stale."""
        if not title or not title.strip():
            raise ValueError("Task title is required")
        if priority not in TASK_PRIORITIES:
            raise ValueError(f"Invalid task priority {priority!r}")
        now = now or utc_now()
        stamp = format_timestamp(now)

        with self.store.transaction() as s:
            item = self.load_in(s, work_item_id)
            task = {
                "id": uuid.uuid4().hex,
                "created_by": item.created_by,
                "title": title.strip(),
                "description": description,
                "status": "pending",
                "priority": priority,
                "scheduled_for": scheduled_for,
                "project_id": project_id,
                "source": f"triage:{item.source_type.value}",
                "last_touched_at": stamp,
                "created_at": stamp,
                "updated_at": stamp,
            }
            s.insert("tasks", task)
            self.links.link(
                item.created_by,
                item.source_type.value,
                item.source_id,
                "task",
                task["id"],
                LinkReason.TASK_CREATED,
                1.0,
                now=now,
                session=s,
            )
            if item.source_type is SourceType.COMMITMENT:
                commitment = s.find_one("commitments", {"id": item.source_id, "created_by": item.created_by})
                if commitment and not commitment.get("task_id"):
                    s.update("commitments", item.source_id, {"task_id": task["id"], "updated_at": stamp})
            self._update(
                s,
                item,
                now,
                reason_codes=_without(item.reason_codes, ReasonCode.NO_NEXT_ACTION, ReasonCode.STALE),
                last_touched_at=stamp,
            )
        logger.info("Task %s created from work item %s", task["id"], work_item_id)
        return task

    def save_as_note(
        self,
        work_item_id: str,
        content: str,
        title: str | None = None,
        context_type: str | None = None,
        context_id: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Save a note in the item's context. Touching the item clears stale."""
        if not content or not content.strip():
            raise ValueError("Note content is required")
        now = now or utc_now()
        stamp = format_timestamp(now)

        with self.store.transaction() as s:
            item = self.load_in(s, work_item_id)
            if not context_type:
                primary = self.links.primary_link(
                    item.source_type.value, item.source_id, item.created_by, session=s
                )
                if primary:
                    context_type, context_id = primary.target_type, primary.target_id
            note = {
                "id": uuid.uuid4().hex,
                "created_by": item.created_by,
                "title": title,
                "content": content,
                "context_type": context_type,
                "context_id": context_id,
                "source_type": item.source_type.value,
                "source_id": item.source_id,
                "created_at": stamp,
                "updated_at": stamp,
            }
            s.insert("notes", note)
            self._update(
                s, item, now, reason_codes=_without(item.reason_codes, ReasonCode.STALE), last_touched_at=stamp
            )
        logger.info("Note %s saved from work item %s", note["id"], work_item_id)
        return note

    def record_extract(
        self,
        work_item_id: str,
        extract_type: str,
        content: dict,
        now: datetime | None = None,
    ) -> ItemExtract:
        """Store enrichment output for the item's source record."""
        now = now or utc_now()
        with self.store.transaction() as s:
            item = self.load_in(s, work_item_id)
            extract = self.extracts.upsert(
                item.created_by,
                item.source_type.value,
                item.source_id,
                extract_type,
                content,
                now=now,
                session=s,
            )
            reason_codes = _without(item.reason_codes, ReasonCode.STALE)
            if extract_type == SUMMARY_EXTRACT:
                reason_codes = _without(reason_codes, ReasonCode.MISSING_SUMMARY)
            self._update(s, item, now, reason_codes=reason_codes, last_touched_at=format_timestamp(now))
        logger.info("Extract %s recorded for work item %s", extract_type, work_item_id)
        return extract

    # ==================== Explanation ====================

    def clearance(self, work_item_id: str, now: datetime | None = None) -> dict:
        """Why the item is still here, and what would clear it."""
        now = now or utc_now()
        with self.store.session() as s:
            item = self.load_in(s, work_item_id)
            satisfied = self.satisfied_trust_conditions(s, item)
            links = self.links.list_for(item.source_type.value, item.source_id, item.created_by, session=s)
            extracts = self.extracts.list_for(item.source_type.value, item.source_id, item.created_by, session=s)

        missing = [c for c in self._trust_conditions(item) if c not in satisfied]
        return {
            "work_item": item.to_dict(now),
            "clearable": bool(satisfied),
            "satisfied_conditions": satisfied,
            "missing_conditions": [] if satisfied else missing,
            "reason_codes": list(item.reason_codes),
            "links": [link.to_dict() for link in links],
            "extracts": [extract.to_dict() for extract in extracts],
        }


def _without(codes: list[str], *dropped: ReasonCode) -> list[str]:
    drop = {code.value for code in dropped}
    return [c for c in codes if c not in drop]
