"""Exception hierarchy for the SWIMR engine."""

from typing import Optional


class SwimrError(Exception):
    """Base class for all SWIMR errors."""


class ExtractionError(SwimrError):
    """Raised when text cannot be extracted from an uploaded document."""


class AnalysisError(SwimrError):
    """Raised when the remote analysis service rejects or fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(SwimrError):
    """Raised when the row store rejects an operation."""


class UpsertNotSupportedError(StoreError):
    """Raised when an upsert targets a column without a unique constraint."""


class JobNotFoundError(SwimrError):
    """Raised when an analysis job disappears from the ledger."""


class JobWaitTimeout(SwimrError):
    """Raised when an analysis job does not finish within the wait timeout."""
