"""
Commitment sub-actions.

Each action sets the commitment's own status. Every action except
mark_waiting_on then drives the commitment's work item to trusted in the
same transaction: resolving the promise is itself a qualifying condition.
"""

import logging
from datetime import datetime

from attention.errors import CommitmentNotFoundError
from attention.priority.types import SourceType
from attention.time_utils import format_timestamp, utc_now
from attention.triage.state_machine import TriageStateMachine

logger = logging.getLogger(__name__)

COMPLETION_CHANNELS = ("manual", "email", "meeting", "message", "other")


class CommitmentActions:
    def __init__(self, state_machine: TriageStateMachine):
        self.state_machine = state_machine
        self.store = state_machine.store

    def _require(self, commitment_id: str, created_by: str) -> None:
        with self.store.session() as s:
            if s.find_one("commitments", {"id": commitment_id, "created_by": created_by}) is None:
                raise CommitmentNotFoundError(commitment_id)

    def _transition(
        self,
        commitment_id: str,
        created_by: str,
        changes: dict,
        now: datetime,
        trust: bool = True,
    ) -> dict:
        self._require(commitment_id, created_by)
        work_item = self.state_machine.ensure_work_item(SourceType.COMMITMENT, commitment_id, created_by, now)
        stamp = format_timestamp(now)

        with self.store.transaction() as s:
            s.update(
                "commitments",
                commitment_id,
                {**changes, "last_touched_at": stamp, "updated_at": stamp},
            )
            if trust:
                work_item = self.state_machine.mark_trusted_in(s, work_item.id, now)
            else:
                s.update("work_items", work_item.id, {"last_touched_at": stamp, "updated_at": stamp})
                work_item = self.state_machine.load_in(s, work_item.id)
            commitment = s.get("commitments", commitment_id)

        logger.info(
            "Commitment %s -> %s (work item %s is %s)",
            commitment_id,
            changes["status"],
            work_item.id,
            work_item.status.value,
        )
        return {"commitment": commitment, "work_item": work_item}

    def complete(
        self,
        commitment_id: str,
        created_by: str,
        completed_via: str | None = None,
        completion_notes: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        if completed_via is not None and completed_via not in COMPLETION_CHANNELS:
            raise ValueError(f"Invalid completed_via {completed_via!r}")
        now = now or utc_now()
        stamp = format_timestamp(now)
        return self._transition(
            commitment_id,
            created_by,
            {
                "status": "completed",
                "completed_at": stamp,
                "resolved_at": stamp,
                "completed_via": completed_via or "manual",
                "completion_notes": completion_notes,
            },
            now,
        )

    def delegate(
        self,
        commitment_id: str,
        created_by: str,
        delegated_to_name: str,
        delegated_to_person_id: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        if not delegated_to_name and not delegated_to_person_id:
            raise ValueError("A delegate name or person id is required")
        now = now or utc_now()
        stamp = format_timestamp(now)
        return self._transition(
            commitment_id,
            created_by,
            {
                "status": "delegated",
                "delegated_to_name": delegated_to_name,
                "delegated_to_person_id": delegated_to_person_id,
                "delegated_at": stamp,
                "resolved_at": stamp,
            },
            now,
        )

    def mark_waiting_on(self, commitment_id: str, created_by: str, now: datetime | None = None) -> dict:
        """Still open, ball in the other court. Does not clear the item."""
        now = now or utc_now()
        return self._transition(commitment_id, created_by, {"status": "waiting_on"}, now, trust=False)

    def break_commitment(self, commitment_id: str, created_by: str, now: datetime | None = None) -> dict:
        now = now or utc_now()
        return self._transition(
            commitment_id,
            created_by,
            {"status": "broken", "resolved_at": format_timestamp(now)},
            now,
        )

    def cancel(self, commitment_id: str, created_by: str, now: datetime | None = None) -> dict:
        now = now or utc_now()
        return self._transition(
            commitment_id,
            created_by,
            {"status": "cancelled", "resolved_at": format_timestamp(now)},
            now,
        )
