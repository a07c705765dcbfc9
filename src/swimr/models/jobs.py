"""Analysis job ledger models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from swimr.models.enums import AnalysisJobStatus


class AnalysisJob(BaseModel):
    """A recorded (candidate, role, content) analysis attempt."""

    id: str = Field(..., description="Job identifier")
    candidate_id: str
    role_id: Optional[str] = None
    cv_hash: str
    job_context_hash: str
    job_context: Optional[str] = Field(default=None, repr=False)
    status: AnalysisJobStatus = Field(default=AnalysisJobStatus.PROCESSING)
    result_json: Optional[dict[str, Any]] = Field(default=None, repr=False)
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="ignore")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
