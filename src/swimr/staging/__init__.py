"""Staging queue for uploaded CVs."""

from swimr.staging.queue import StagingQueue

__all__ = ["StagingQueue"]
