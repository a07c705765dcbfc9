"""User-facing notifications and batch progress display with Rich console output."""

import logging
from typing import Optional, Protocol, runtime_checkable

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from swimr.models.batch import BatchRun
from swimr.models.enums import BatchItemStatus, NoticeLevel

logger = logging.getLogger("swimr.orchestration.progress")

_LEVEL_STYLES = {
    NoticeLevel.INFO: ("bold blue", "i"),
    NoticeLevel.SUCCESS: ("bold green", "✓"),
    NoticeLevel.WARNING: ("bold yellow", "!"),
    NoticeLevel.ERROR: ("bold red", "✗"),
}

_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.SUCCESS: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}

_STATUS_STYLES = {
    BatchItemStatus.PENDING: "dim",
    BatchItemStatus.EXTRACTING: "cyan",
    BatchItemStatus.ANALYSING: "cyan",
    BatchItemStatus.COMPLETED: "green",
    BatchItemStatus.FAILED: "red",
}


@runtime_checkable
class Notifier(Protocol):
    """Transient user notification sink."""

    def notify(
        self,
        title: str,
        description: Optional[str] = None,
        level: NoticeLevel = NoticeLevel.INFO,
    ) -> None:
        """Show a notification to the user.

        Args:
            title: Short headline.
            description: Optional detail line.
            level: Severity.
        """
        ...


class ConsoleNotifier:
    """Prints notifications to a Rich console and mirrors them to the log."""

    def __init__(self, console: Optional[Console] = None, quiet: bool = False):
        """Initialize the notifier.

        Args:
            console: Rich console for output (created if not provided).
            quiet: Only log, never print.
        """
        self._console = console or Console()
        self._quiet = quiet

    def notify(
        self,
        title: str,
        description: Optional[str] = None,
        level: NoticeLevel = NoticeLevel.INFO,
    ) -> None:
        level = NoticeLevel(level)
        message = f"{title}: {description}" if description else title
        logger.log(_LOG_LEVELS[level], message)

        if self._quiet:
            return

        style, marker = _LEVEL_STYLES[level]
        line = f"[{style}]{marker} {title}[/]"
        if description:
            line += f" {description}"
        self._console.print(line)


class RunProgressTracker:
    """Renders batch run snapshots as a progress bar and summary table."""

    def __init__(
        self,
        console: Optional[Console] = None,
        show_progress: bool = True,
    ):
        """Initialize the progress tracker.

        Args:
            console: Rich console for output (created if not provided).
            show_progress: Whether to show progress bar.
        """
        self._console = console or Console()
        self._show_progress = show_progress
        self._progress: Optional[Progress] = None
        self._task_id: Optional[TaskID] = None

    def _create_progress_bar(self, total: int) -> None:
        if self._progress is not None:
            return

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            console=self._console,
            transient=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task("Analysing CVs", total=total)

    def update(self, run: BatchRun) -> None:
        """Reflect a run snapshot in the progress bar.

        Suitable as a coordinator listener.

        Args:
            run: Latest run snapshot.
        """
        if not self._show_progress:
            return

        self._create_progress_bar(run.total_count)
        if self._progress is None or self._task_id is None:
            return

        current = run.current_item
        if current is not None:
            display_name = current.file_name
            if len(display_name) > 50:
                display_name = "..." + display_name[-47:]
            verb = "Extracting" if current.status == BatchItemStatus.EXTRACTING else "Analysing"
            description = f"{verb}: {display_name}"
        else:
            description = "Analysing CVs"

        self._progress.update(
            self._task_id,
            total=run.total_count,
            completed=run.completed_count + run.failed_count,
            description=description,
        )

    def finish(self, run: Optional[BatchRun] = None) -> None:
        """Stop the progress bar and print completion counts."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._task_id = None

        if run is None:
            return

        self._console.print()
        self._console.print(f"[bold green]✓ Completed:[/] {run.completed_count} CVs")
        if run.failed_count > 0:
            self._console.print(f"[bold red]✗ Failed:[/] {run.failed_count} CVs")
        pending = run.total_count - run.completed_count - run.failed_count
        if pending > 0:
            self._console.print(f"[bold yellow]… Pending:[/] {pending} CVs")

    def display_run_table(self, run: BatchRun) -> None:
        """Display the items of a run and their status.

        Args:
            run: Run snapshot to display.
        """
        if run.role_name:
            title = f"Batch Run {run.run_id} ({run.role_name})"
        else:
            title = f"Batch Run {run.run_id}"
        table = Table(title=title)

        table.add_column("#", justify="right", style="dim")
        table.add_column("File", style="cyan", max_width=40)
        table.add_column("Status", justify="center")
        table.add_column("Candidate", max_width=36)
        table.add_column("Error", max_width=40)

        for index, item in enumerate(run.items, start=1):
            style = _STATUS_STYLES[item.status]
            table.add_row(
                str(index),
                item.file_name,
                f"[{style}]{item.status.value}[/]",
                item.candidate_id or "",
                item.error or "",
            )

        self._console.print(table)

        if run.cancelled:
            state = "[yellow]cancelled[/]"
        elif run.active:
            state = "[cyan]active[/]"
        else:
            state = "[green]finished[/]"
        self._console.print(
            f"State: {state} • {run.completed_count} completed, "
            f"{run.failed_count} failed, {run.total_count} total"
        )
