"""Utility helpers."""

from swimr.utils.file_utils import format_size, is_supported_document, read_bytes_async
from swimr.utils.logging import setup_logging
from swimr.utils.tasks import TaskSupervisor

__all__ = [
    "TaskSupervisor",
    "format_size",
    "is_supported_document",
    "read_bytes_async",
    "setup_logging",
]
