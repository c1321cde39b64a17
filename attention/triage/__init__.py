"""
Triage workflow: work items, links, extracts and the guarded state machine.

Usage:
    from attention.triage import TriageStateMachine

    machine = TriageStateMachine(store)
    item = machine.ensure_work_item("inbox", message_id, user_id)
    machine.link_entity(item.id, "company", company_id)
    machine.mark_trusted(item.id)
"""

from .commitments import CommitmentActions
from .links import EntityLinkRegistry, ExtractLookup, ExtractRegistry
from .models import (
    EntityLink,
    ItemExtract,
    LinkReason,
    ReasonCode,
    WorkItem,
    WorkItemStatus,
)
from .queue import WorkQueue, WorkQueueEntry
from .state_machine import TriageStateMachine

__all__ = [
    "CommitmentActions",
    "EntityLinkRegistry",
    "ExtractLookup",
    "ExtractRegistry",
    "EntityLink",
    "ItemExtract",
    "LinkReason",
    "ReasonCode",
    "WorkItem",
    "WorkItemStatus",
    "WorkQueue",
    "WorkQueueEntry",
    "TriageStateMachine",
]
