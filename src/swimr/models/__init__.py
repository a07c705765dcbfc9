"""Domain models for the SWIMR engine."""

from swimr.models.analysis import AnalysisResult, OverallScore
from swimr.models.batch import BatchRun, BatchRunItem
from swimr.models.enums import (
    AnalysisJobStatus,
    BatchItemStatus,
    NoticeLevel,
    StagedFileStatus,
)
from swimr.models.jobs import AnalysisJob
from swimr.models.role import Role, TargetUniversity, build_job_context
from swimr.models.staging import FileUpload, StagedFile

__all__ = [
    "AnalysisJob",
    "AnalysisJobStatus",
    "AnalysisResult",
    "BatchItemStatus",
    "BatchRun",
    "BatchRunItem",
    "FileUpload",
    "NoticeLevel",
    "OverallScore",
    "Role",
    "StagedFile",
    "StagedFileStatus",
    "TargetUniversity",
    "build_job_context",
]
