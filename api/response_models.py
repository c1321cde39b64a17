"""
Shared Pydantic models for the HTTP surface.

Request bodies carry validation; response models give FastAPI the type
information it needs for the OpenAPI schema. Nested records (links,
extracts, priority items) stay loosely typed as dicts.
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== Priority ====


class PriorityQueueResponse(BaseModel):
    """Ranked queue for one user under one config."""

    config: str
    generated_at: str
    items: list[dict[str, Any]] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
    all_items: list[dict[str, Any]] | None = None


class PriorityConfigListResponse(BaseModel):
    active: str
    configs: list[dict[str, Any]] = Field(default_factory=list)


# ==== Triage requests ====


class EnsureWorkItemRequest(BaseModel):
    """Observe a source record; creates its work item on first sight."""

    source_type: str = Field(..., description="task, inbox, calendar_event, commitment, ...")
    source_id: str = Field(..., min_length=1)
    created_by: str = Field(..., min_length=1, description="Owning user id")


class SnoozeRequest(BaseModel):
    until: str = Field(..., description="ISO-8601 timestamp; the item resurfaces after it")


class LinkRequest(BaseModel):
    target_type: str = Field(..., min_length=1, description="company, pipeline_company, project or task")
    target_id: str = Field(..., min_length=1)
    link_reason: str = Field(default="manual", description="manual|ai_match|task_created|domain_match|direct_link")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class CreateTaskRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    priority: str = Field(default="medium", description="high|medium|low")
    project_id: str | None = None
    scheduled_for: str | None = None


class NoteRequest(BaseModel):
    content: str = Field(..., min_length=1)
    title: str | None = None
    context_type: str | None = None
    context_id: str | None = None


class ExtractRequest(BaseModel):
    extract_type: str = Field(..., min_length=1, description="summary, action_items, ...")
    content: dict[str, Any] = Field(default_factory=dict)


class CommitmentActionRequest(BaseModel):
    created_by: str = Field(..., min_length=1)


class CompleteCommitmentRequest(CommitmentActionRequest):
    completed_via: str | None = Field(default=None, description="manual|email|meeting|message|other")
    completion_notes: str | None = None


class DelegateCommitmentRequest(CommitmentActionRequest):
    delegated_to_name: str = Field(..., min_length=1)
    delegated_to_person_id: str | None = None


# ==== Triage responses ====


class WorkItemResponse(BaseModel):
    id: str
    created_by: str
    source_type: str
    source_id: str
    status: str
    stored_status: str
    reason_codes: list[str] = Field(default_factory=list)
    priority: int = 0
    snooze_until: str | None = None
    trusted_at: str | None = None
    reviewed_at: str | None = None
    last_touched_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ClearanceResponse(BaseModel):
    """A work item plus what would clear it."""

    work_item: WorkItemResponse
    clearable: bool
    satisfied_conditions: list[str] = Field(default_factory=list)
    missing_conditions: list[str] = Field(default_factory=list)
    reason_codes: list[str] = Field(default_factory=list)
    links: list[dict[str, Any]] = Field(default_factory=list)
    extracts: list[dict[str, Any]] = Field(default_factory=list)


class WorkQueueResponse(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int
    counts: dict[str, Any] = Field(default_factory=dict)


class CommitmentActionResponse(BaseModel):
    commitment: dict[str, Any]
    work_item: WorkItemResponse
