"""Staging queue data models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from swimr.models.enums import StagedFileStatus


class StagedFile(BaseModel):
    """A file added to the staging queue, independent of any batch run."""

    id: str = Field(..., description="Unique staged file identifier")
    file_name: str
    file_size: int = Field(default=0, ge=0, description="Size in bytes")
    upload_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: StagedFileStatus = Field(default=StagedFileStatus.UPLOADING)
    progress: float = Field(default=0.0, ge=0.0, le=100.0, description="Upload progress percent")

    # Raw binary payload; never serialized, so it is gone after a reload
    content: Optional[bytes] = Field(default=None, exclude=True, repr=False)

    extracted_text: Optional[str] = Field(default=None, repr=False)

    @property
    def has_content(self) -> bool:
        """Whether the original binary is still available for extraction."""
        return self.content is not None


class FileUpload(BaseModel):
    """A file handed to the staging queue: its name and raw bytes."""

    file_name: str
    content: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)
