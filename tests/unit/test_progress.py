"""Tests for console notifications and run progress display."""

import io
import logging

import pytest
from rich.console import Console

from swimr.models.batch import BatchRun, BatchRunItem
from swimr.models.enums import BatchItemStatus, NoticeLevel
from swimr.orchestration.progress import ConsoleNotifier, Notifier, RunProgressTracker


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=120, color_system=None)


def output(console: Console) -> str:
    return console.file.getvalue()


def make_run(*statuses: BatchItemStatus, **fields) -> BatchRun:
    items = [
        BatchRunItem(
            id=f"batch-{i}",
            staged_file_id=f"staged-{i}",
            file_name=f"cv-{i}.pdf",
            status=status,
            error="Text extraction failed: boom" if status == BatchItemStatus.FAILED else None,
        )
        for i, status in enumerate(statuses, start=1)
    ]
    return BatchRun(run_id="run-1", items=items, **fields)


class TestConsoleNotifier:
    """Tests for ConsoleNotifier."""

    def test_satisfies_protocol(self, console):
        assert isinstance(ConsoleNotifier(console), Notifier)

    def test_prints_title_and_description(self, console):
        """Test the printed notification line."""
        ConsoleNotifier(console).notify("✓ Alice analysed", "Score: 88", level=NoticeLevel.SUCCESS)
        assert "✓ Alice analysed Score: 88" in output(console)

    def test_logs_at_mapped_level(self, console, caplog):
        """Test that notifications are mirrored to the log."""
        with caplog.at_level(logging.INFO, logger="swimr.orchestration.progress"):
            ConsoleNotifier(console).notify("Analysis failed", "Rate limit", level=NoticeLevel.ERROR)
            ConsoleNotifier(console).notify("Batch analysis cancelled")

        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels == [
            (logging.ERROR, "Analysis failed: Rate limit"),
            (logging.INFO, "Batch analysis cancelled"),
        ]

    def test_quiet(self, console):
        ConsoleNotifier(console, quiet=True).notify("Batch analysis complete", "2 completed")
        assert output(console) == ""


class TestRunProgressTracker:
    """Tests for RunProgressTracker."""

    def test_display_run_table(self, console):
        """Test the run summary table."""
        run = make_run(
            BatchItemStatus.COMPLETED,
            BatchItemStatus.FAILED,
            BatchItemStatus.PENDING,
            role_name="Data Engineer",
            active=False,
            cancelled=True,
        )

        RunProgressTracker(console=console).display_run_table(run)
        text = output(console)

        assert "Batch Run run-1 (Data Engineer)" in text
        assert "cv-2.pdf" in text
        assert "failed" in text
        assert "State: cancelled" in text
        assert "1 completed, 1 failed, 3 total" in text

    def test_finish_counts(self, console):
        """Test the completion summary."""
        tracker = RunProgressTracker(console=console, show_progress=False)
        tracker.finish(make_run(BatchItemStatus.COMPLETED, BatchItemStatus.FAILED, BatchItemStatus.PENDING))

        text = output(console)
        assert "Completed: 1 CVs" in text
        assert "Failed: 1 CVs" in text
        assert "Pending: 1 CVs" in text

    def test_update_as_listener(self, console):
        """Test that snapshots drive the progress bar."""
        tracker = RunProgressTracker(console=console)

        tracker.update(make_run(BatchItemStatus.EXTRACTING, BatchItemStatus.PENDING))
        task = tracker._progress.tasks[0]
        assert task.description == "Extracting: cv-1.pdf"
        assert task.completed == 0
        assert task.total == 2

        tracker.update(make_run(BatchItemStatus.COMPLETED, BatchItemStatus.ANALYSING))
        task = tracker._progress.tasks[0]
        assert task.description == "Analysing: cv-2.pdf"
        assert task.completed == 1

        tracker.finish()
        assert tracker._progress is None

    def test_disabled_progress(self, console):
        tracker = RunProgressTracker(console=console, show_progress=False)
        tracker.update(make_run(BatchItemStatus.PENDING))
        assert tracker._progress is None
