"""Batch run orchestration, single-item analysis and progress display."""

from swimr.orchestration.analyser import SingleItemAnalyser
from swimr.orchestration.cancellation import CancellationToken
from swimr.orchestration.coordinator import BatchRunCoordinator
from swimr.orchestration.progress import ConsoleNotifier, Notifier, RunProgressTracker
from swimr.orchestration.runner import SwimrRuntime
from swimr.orchestration.state import RunStateStore

__all__ = [
    "BatchRunCoordinator",
    "CancellationToken",
    "ConsoleNotifier",
    "Notifier",
    "RunProgressTracker",
    "RunStateStore",
    "SingleItemAnalyser",
    "SwimrRuntime",
]
