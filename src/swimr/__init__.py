"""SWIMR batch analysis engine.

Stages uploaded CVs, extracts their text, sends them for structured scoring
against a role and keeps durable, resumable progress for every batch run.
"""

__version__ = "0.1.0"

from swimr.models.enums import AnalysisJobStatus, BatchItemStatus, StagedFileStatus

__all__ = [
    "__version__",
    "AnalysisJobStatus",
    "BatchItemStatus",
    "StagedFileStatus",
]
