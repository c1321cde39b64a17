"""Exception hierarchy for the attention engine.

Storage failures (``sqlite3.Error``) are not wrapped; they
propagate to the caller unchanged.
"""


class AttentionError(Exception):
    """Base class for attention engine errors."""


class ConfigError(AttentionError):
    """A priority configuration is missing or invalid."""


class MalformedRecordError(AttentionError):
    """A raw source record cannot be mapped to a priority item."""

    def __init__(self, source_type: str, reason: str, record_id=None):
        self.source_type = source_type
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Malformed {source_type} record {record_id!r}: {reason}")


class TriageError(AttentionError):
    """Base class for triage workflow errors."""


class WorkItemNotFoundError(TriageError):
    def __init__(self, work_item_id: str):
        self.work_item_id = work_item_id
        super().__init__(f"Work item not found: {work_item_id}")


class SourceNotFoundError(TriageError):
    def __init__(self, source_type: str, source_id: str):
        self.source_type = source_type
        self.source_id = source_id
        super().__init__(f"Source record not found: {source_type}/{source_id}")


class CommitmentNotFoundError(TriageError):
    def __init__(self, commitment_id: str):
        self.commitment_id = commitment_id
        super().__init__(f"Commitment not found: {commitment_id}")


class TrustGuardViolation(TriageError):
    """
    Raised when an item is marked trusted without any qualifying evidence.

    An item is clearable only with an entity link, an AI extract, an explicit
    "no action needed" decision, or (for commitments) a resolution.
    """

    MESSAGE = (
        "Cannot mark as trusted: item needs an entity link, an AI summary, "
        "an explicit 'no action needed' decision or a resolved commitment"
    )

    def __init__(self, work_item_id: str, missing_conditions: list[str]):
        self.work_item_id = work_item_id
        self.missing_conditions = list(missing_conditions)
        super().__init__(self.MESSAGE)
