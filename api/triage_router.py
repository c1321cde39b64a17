"""
Triage API Router: work items, their clearance and commitment actions.

Endpoints:
- GET /api/triage/queue: open work items for a user
- POST /api/triage/items: observe a source record (creates its work item)
- GET /api/triage/items/{work_item_id}: item with clearance explanation
- POST /api/triage/items/{work_item_id}/snooze
- POST /api/triage/items/{work_item_id}/no-action
- POST /api/triage/items/{work_item_id}/trust: guarded; 409 without evidence
- POST /api/triage/items/{work_item_id}/links
- POST /api/triage/items/{work_item_id}/tasks
- POST /api/triage/items/{work_item_id}/notes
- POST /api/triage/items/{work_item_id}/extracts
- POST /api/triage/commitments/{commitment_id}/complete|delegate|waiting-on|break|cancel
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from api.response_models import (
    ClearanceResponse,
    CommitmentActionRequest,
    CommitmentActionResponse,
    CompleteCommitmentRequest,
    CreateTaskRequest,
    DelegateCommitmentRequest,
    EnsureWorkItemRequest,
    ExtractRequest,
    LinkRequest,
    NoteRequest,
    SnoozeRequest,
    WorkItemResponse,
    WorkQueueResponse,
)
from attention.errors import (
    CommitmentNotFoundError,
    SourceNotFoundError,
    TrustGuardViolation,
    WorkItemNotFoundError,
)
from attention.state_store import get_store
from attention.time_utils import utc_now
from attention.triage import CommitmentActions, TriageStateMachine, WorkQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/triage", tags=["triage"])

_NOT_FOUND = (WorkItemNotFoundError, SourceNotFoundError, CommitmentNotFoundError)

# Global instances, rebuilt when the process-wide store changes
_state_machine: TriageStateMachine | None = None
_work_queue: WorkQueue | None = None


def get_state_machine() -> TriageStateMachine:
    global _state_machine
    store = get_store()
    if _state_machine is None or _state_machine.store is not store:
        _state_machine = TriageStateMachine(store)
    return _state_machine


def get_work_queue() -> WorkQueue:
    global _work_queue
    store = get_store()
    if _work_queue is None or _work_queue.store is not store:
        _work_queue = WorkQueue(store)
    return _work_queue


def get_commitment_actions() -> CommitmentActions:
    return CommitmentActions(get_state_machine())


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map an engine exception onto the HTTP status the client should see."""
    if isinstance(e, TrustGuardViolation):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(e),
                "work_item_id": e.work_item_id,
                "missing_conditions": e.missing_conditions,
            },
        )
    if isinstance(e, _NOT_FOUND):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        logger.error(f"Invalid request: {str(e)}")
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {str(e)}")
    return HTTPException(status_code=500, detail="Internal server error")


def _work_item(item) -> dict[str, Any]:
    return item.to_dict(utc_now())


# ==== Queue ====


@router.get("/queue", response_model=WorkQueueResponse)
async def get_triage_queue(
    created_by: str = Query(..., min_length=1),
    status: str | None = Query(default=None, description="needs_review (default), snoozed or pending"),
    source_type: list[str] | None = Query(default=None),
    reason_code: list[str] | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=500),
):
    """Open work items, highest triage priority first."""
    try:
        queue = get_work_queue()
        now = utc_now()
        entries = queue.list_items(
            created_by,
            now=now,
            status=status,
            source_types=source_type,
            reason_codes=reason_code,
            limit=limit,
        )
        return {
            "items": [entry.to_dict(now) for entry in entries],
            "total": len(entries),
            "counts": queue.counts(created_by, now),
        }
    except Exception as e:
        raise _http_error(e, "listing triage queue") from e


# ==== Work items ====


@router.post("/items", response_model=WorkItemResponse)
async def ensure_work_item(request: EnsureWorkItemRequest):
    """Create (or return) the work item for a source record."""
    try:
        item = get_state_machine().ensure_work_item(request.source_type, request.source_id, request.created_by)
        return _work_item(item)
    except Exception as e:
        raise _http_error(e, "ensuring work item") from e


@router.get("/items/{work_item_id}", response_model=ClearanceResponse)
async def get_work_item(work_item_id: str):
    """The item, its links and extracts, and what would clear it."""
    try:
        return get_state_machine().clearance(work_item_id)
    except Exception as e:
        raise _http_error(e, "loading work item") from e


@router.post("/items/{work_item_id}/snooze", response_model=WorkItemResponse)
async def snooze_work_item(work_item_id: str, request: SnoozeRequest):
    try:
        return _work_item(get_state_machine().snooze(work_item_id, request.until))
    except Exception as e:
        raise _http_error(e, "snoozing work item") from e


@router.post("/items/{work_item_id}/no-action", response_model=WorkItemResponse)
async def mark_no_action(work_item_id: str):
    """Record an explicit 'nothing to do' decision."""
    try:
        return _work_item(get_state_machine().no_action(work_item_id))
    except Exception as e:
        raise _http_error(e, "marking work item no-action") from e


@router.post("/items/{work_item_id}/trust", response_model=WorkItemResponse)
async def mark_trusted(work_item_id: str):
    """Clear the item. Refused with 409 unless some evidence exists."""
    try:
        return _work_item(get_state_machine().mark_trusted(work_item_id))
    except Exception as e:
        raise _http_error(e, "trusting work item") from e


@router.post("/items/{work_item_id}/links")
async def link_entity(work_item_id: str, request: LinkRequest):
    try:
        link = get_state_machine().link_entity(
            work_item_id,
            request.target_type,
            request.target_id,
            link_reason=request.link_reason,
            confidence=request.confidence,
        )
        return {"link": link.to_dict()}
    except Exception as e:
        raise _http_error(e, "linking work item") from e


@router.post("/items/{work_item_id}/tasks")
async def create_task(work_item_id: str, request: CreateTaskRequest):
    """Create a follow-up task from the item."""
    try:
        task = get_state_machine().create_task_from_suggestion(
            work_item_id,
            request.title,
            description=request.description,
            priority=request.priority,
            project_id=request.project_id,
            scheduled_for=request.scheduled_for,
        )
        return {"task": task}
    except Exception as e:
        raise _http_error(e, "creating task from work item") from e


@router.post("/items/{work_item_id}/notes")
async def save_note(work_item_id: str, request: NoteRequest):
    try:
        note = get_state_machine().save_as_note(
            work_item_id,
            request.content,
            title=request.title,
            context_type=request.context_type,
            context_id=request.context_id,
        )
        return {"note": note}
    except Exception as e:
        raise _http_error(e, "saving note") from e


@router.post("/items/{work_item_id}/extracts")
async def record_extract(work_item_id: str, request: ExtractRequest):
    """Store enrichment output (summary, action items, ...) for the item."""
    try:
        extract = get_state_machine().record_extract(work_item_id, request.extract_type, request.content)
        return {"extract": extract.to_dict()}
    except Exception as e:
        raise _http_error(e, "recording extract") from e


# ==== Commitments ====


def _commitment_result(result: dict) -> dict[str, Any]:
    return {"commitment": result["commitment"], "work_item": _work_item(result["work_item"])}


@router.post("/commitments/{commitment_id}/complete", response_model=CommitmentActionResponse)
async def complete_commitment(commitment_id: str, request: CompleteCommitmentRequest):
    try:
        result = get_commitment_actions().complete(
            commitment_id,
            request.created_by,
            completed_via=request.completed_via,
            completion_notes=request.completion_notes,
        )
        return _commitment_result(result)
    except Exception as e:
        raise _http_error(e, "completing commitment") from e


@router.post("/commitments/{commitment_id}/delegate", response_model=CommitmentActionResponse)
async def delegate_commitment(commitment_id: str, request: DelegateCommitmentRequest):
    try:
        result = get_commitment_actions().delegate(
            commitment_id,
            request.created_by,
            request.delegated_to_name,
            delegated_to_person_id=request.delegated_to_person_id,
        )
        return _commitment_result(result)
    except Exception as e:
        raise _http_error(e, "delegating commitment") from e


@router.post("/commitments/{commitment_id}/waiting-on", response_model=CommitmentActionResponse)
async def mark_commitment_waiting_on(commitment_id: str, request: CommitmentActionRequest):
    """Ball is in the other court; the work item stays open."""
    try:
        result = get_commitment_actions().mark_waiting_on(commitment_id, request.created_by)
        return _commitment_result(result)
    except Exception as e:
        raise _http_error(e, "marking commitment waiting-on") from e


@router.post("/commitments/{commitment_id}/break", response_model=CommitmentActionResponse)
async def break_commitment(commitment_id: str, request: CommitmentActionRequest):
    try:
        result = get_commitment_actions().break_commitment(commitment_id, request.created_by)
        return _commitment_result(result)
    except Exception as e:
        raise _http_error(e, "breaking commitment") from e


@router.post("/commitments/{commitment_id}/cancel", response_model=CommitmentActionResponse)
async def cancel_commitment(commitment_id: str, request: CommitmentActionRequest):
    try:
        result = get_commitment_actions().cancel(commitment_id, request.created_by)
        return _commitment_result(result)
    except Exception as e:
        raise _http_error(e, "cancelling commitment") from e
