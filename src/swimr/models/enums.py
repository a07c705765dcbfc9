"""Enumerations for the SWIMR engine."""

from enum import Enum


class StagedFileStatus(str, Enum):
    """Lifecycle of a file in the staging queue."""

    UPLOADING = "uploading"
    PENDING = "pending"
    ANALYSING = "analysing"
    DONE = "done"
    FAILED = "failed"


class BatchItemStatus(str, Enum):
    """Lifecycle of a single item inside a batch run."""

    PENDING = "pending"
    EXTRACTING = "extracting"
    ANALYSING = "analysing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further automatic transition happens from this status."""
        return self in (BatchItemStatus.COMPLETED, BatchItemStatus.FAILED)

    @property
    def is_in_flight(self) -> bool:
        """Whether the item was mid-processing."""
        return self in (BatchItemStatus.EXTRACTING, BatchItemStatus.ANALYSING)


class AnalysisJobStatus(str, Enum):
    """Status of a ledger entry for a remote analysis job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the remote job has finished."""
        return self in (AnalysisJobStatus.COMPLETED, AnalysisJobStatus.FAILED)


class NoticeLevel(str, Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
