"""Batch run data models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from swimr.models.enums import BatchItemStatus


class BatchRunItem(BaseModel):
    """One unit of work inside a batch run."""

    id: str = Field(..., description="Batch item identifier")
    staged_file_id: str = Field(..., description="Back-reference to the staged file")

    # Copied at run start so it survives removal of the staged file
    file_name: str

    cv_text: Optional[str] = Field(default=None, repr=False)
    status: BatchItemStatus = Field(default=BatchItemStatus.PENDING)
    error: Optional[str] = Field(default=None)
    candidate_id: Optional[str] = Field(default=None)


class BatchRun(BaseModel):
    """Aggregate for one batch submission."""

    run_id: str
    role_id: Optional[str] = None
    role_name: Optional[str] = None
    job_context: Optional[str] = Field(default=None, repr=False)
    items: list[BatchRunItem] = Field(default_factory=list)
    active: bool = True
    cancelled: bool = False
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def current_item(self) -> Optional[BatchRunItem]:
        """The item currently being extracted or analysed, if any."""
        for item in self.items:
            if item.status.is_in_flight:
                return item
        return None

    @property
    def total_count(self) -> int:
        return len(self.items)

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.items if item.status == BatchItemStatus.COMPLETED)

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.items if item.status == BatchItemStatus.FAILED)

    @property
    def all_terminal(self) -> bool:
        """Check if every item reached completed or failed."""
        return all(item.status.is_terminal for item in self.items)

    @property
    def has_unfinished(self) -> bool:
        """Check if any item still needs processing."""
        return any(not item.status.is_terminal for item in self.items)
