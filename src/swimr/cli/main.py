"""Main CLI entry point for swimr."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from swimr import __version__
from swimr.config import SwimrConfig, load_config
from swimr.models.analysis import AnalysisResult
from swimr.orchestration.progress import RunProgressTracker
from swimr.orchestration.runner import SwimrRuntime
from swimr.orchestration.state import RunStateStore
from swimr.utils.logging import setup_logging

logger = logging.getLogger("swimr.cli.main")

# Create the main Typer app
app = typer.Typer(
    name="swimr",
    help="""Batch CV analysis with durable, resumable runs.

[bold]Examples:[/bold]

  [dim]# Analyse a folder of CVs against a stored role[/dim]
  swimr batch ./cvs/*.pdf --role-id 5b1f...

  [dim]# Continue a run interrupted by a crash[/dim]
  swimr resume

  [dim]# Retry the items that failed[/dim]
  swimr retry

  [dim]# Score a single CV[/dim]
  swimr analyse ./cvs/jane-doe.docx --job-description "Backend engineer, Python"

[bold]Configuration:[/bold]

  Create [cyan]swimr.config.json[/cyan] in your working directory, or use CLI flags.
  Set [cyan]SWIMR_ANALYZE_URL[/cyan] and [cyan]SWIMR_API_KEY[/cyan] for the analysis service.
""",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Console for rich output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"swimr version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Analyse CVs in resumable batches."""
    pass


# Common options used across commands
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]

VerboseOption = Annotated[
    Optional[int],
    typer.Option(
        "--verbose",
        "-v",
        help="Verbosity level (0=quiet, 1=normal, 2=verbose, 3=debug).",
        min=0,
        max=3,
        count=True,
    ),
]

RoleOption = Annotated[
    Optional[str],
    typer.Option(
        "--role-id",
        "-r",
        help="Id of a stored role to analyse against.",
    ),
]

JobDescriptionOption = Annotated[
    Optional[str],
    typer.Option(
        "--job-description",
        "-j",
        help="Free-text job description (appended to the role context if both are given).",
    ),
]

DbOption = Annotated[
    Optional[Path],
    typer.Option(
        "--db",
        help="Path to the candidates database.",
    ),
]

StateOption = Annotated[
    Optional[Path],
    typer.Option(
        "--state",
        help="Path to the batch run state database.",
    ),
]


def _load(
    config: Optional[Path],
    verbose: Optional[int],
    db: Optional[Path] = None,
    state: Optional[Path] = None,
) -> SwimrConfig:
    cfg = load_config(
        config_path=config,
        db_path=db,
        run_state_path=state,
        verbose=verbose,
    )
    setup_logging(verbosity=cfg.output.verbosity, log_file=cfg.output.log_file)
    return cfg


def _install_cancel_handler(runtime: SwimrRuntime) -> None:
    """First Ctrl-C cancels the batch cooperatively, the second aborts."""
    coordinator = runtime.coordinator
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()

    def on_interrupt() -> None:
        if coordinator.is_running:
            console.print("\n[yellow]Cancelling batch after the current item (Ctrl-C again to abort)[/yellow]")
            runtime.supervisor.spawn(coordinator.cancel_run(), name="cancel-run")
        elif main_task is not None:
            main_task.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl-C aborts immediately")


def _fail(e: Exception, verbose: int) -> None:
    console.print(f"\n[bold red]Error:[/bold red] {e}")
    if verbose >= 2:
        console.print_exception()
    sys.exit(1)


def _print_result(result: AnalysisResult, file_name: Optional[str] = None) -> None:
    """Print a summary table of one analysis result."""
    table = Table(title=f"Analysis of {file_name}" if file_name else "Analysis")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Candidate", result.candidate_name or "Unknown")
    if result.email:
        table.add_row("Email", result.email)
    table.add_row("Score", f"{result.composite_score}")
    table.add_row("Recommendation", result.recommendation)
    if result.summary:
        table.add_row("Summary", result.summary)

    console.print(table)

    suggestions = result.overall_score.improvement_suggestions if result.overall_score else []
    if suggestions:
        console.print()
        console.print("[bold]Suggestions:[/bold]")
        for suggestion in suggestions:
            console.print(f"  • {suggestion}")


@app.command()
def batch(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="CV files (PDF or DOCX) to analyse.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    role_id: RoleOption = None,
    job_description: JobDescriptionOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    state: StateOption = None,
    verbose: VerboseOption = None,
) -> None:
    """Analyse a set of CVs one after another.

    Progress is saved after every step; an interrupted run can be continued
    with [cyan]swimr resume[/cyan]. Press Ctrl-C once to stop after the
    current CV.
    """
    cfg = _load(config, verbose, db, state)

    async def _run() -> None:
        tracker = RunProgressTracker(console=console, show_progress=cfg.output.verbosity > 0)
        async with SwimrRuntime(cfg, console=console) as runtime:
            _install_cancel_handler(runtime)
            run = None
            try:
                run = await runtime.run_batch(
                    files,
                    role_id=role_id,
                    job_description=job_description,
                    tracker=tracker,
                )
            finally:
                tracker.finish(run)
            if run is None:
                sys.exit(1)
            tracker.display_run_table(run)

    try:
        asyncio.run(_run())
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Batch interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        _fail(e, cfg.output.verbosity)


@app.command()
def resume(
    config: ConfigOption = None,
    db: DbOption = None,
    state: StateOption = None,
    verbose: VerboseOption = None,
) -> None:
    """Continue a batch run left active by an interrupted process.

    Files that had not been extracted yet cannot be recovered and are
    marked failed; re-add them with a new batch.
    """
    cfg = _load(config, verbose, db, state)

    async def _run() -> None:
        tracker = RunProgressTracker(console=console, show_progress=cfg.output.verbosity > 0)
        async with SwimrRuntime(cfg, console=console) as runtime:
            _install_cancel_handler(runtime)
            run = None
            try:
                run = await runtime.resume(tracker=tracker)
            finally:
                tracker.finish(run)
            if run is None:
                console.print("[yellow]No batch run recorded[/yellow]")
                return
            tracker.display_run_table(run)

    try:
        asyncio.run(_run())
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Resume interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        _fail(e, cfg.output.verbosity)


@app.command()
def retry(
    config: ConfigOption = None,
    db: DbOption = None,
    state: StateOption = None,
    verbose: VerboseOption = None,
) -> None:
    """Retry every failed item of the last batch run."""
    cfg = _load(config, verbose, db, state)

    async def _run() -> None:
        tracker = RunProgressTracker(console=console, show_progress=cfg.output.verbosity > 0)
        async with SwimrRuntime(cfg, console=console) as runtime:
            _install_cancel_handler(runtime)
            run = None
            try:
                run = await runtime.retry(tracker=tracker)
            finally:
                tracker.finish(run)
            tracker.display_run_table(run)

    try:
        asyncio.run(_run())
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Retry interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        _fail(e, cfg.output.verbosity)


@app.command()
def status(
    config: ConfigOption = None,
    state: StateOption = None,
    verbose: VerboseOption = None,
) -> None:
    """Show the last recorded batch run."""
    cfg = _load(config, verbose, state=state)

    try:
        run = asyncio.run(RunStateStore(cfg.storage.run_state_path).load_run())
    except Exception as e:
        _fail(e, cfg.output.verbosity)
        return

    if run is None:
        console.print("[yellow]No batch run recorded[/yellow]")
        return

    RunProgressTracker(console=console, show_progress=False).display_run_table(run)


@app.command()
def analyse(
    file: Annotated[
        Path,
        typer.Argument(
            help="CV file (PDF or DOCX) to analyse.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    role_id: RoleOption = None,
    job_description: JobDescriptionOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
) -> None:
    """Analyse a single CV without recording a batch run."""
    cfg = _load(config, verbose, db)

    async def _run() -> AnalysisResult:
        async with SwimrRuntime(cfg, console=console) as runtime:
            return await runtime.analyse_file(
                file,
                role_id=role_id,
                job_description=job_description,
            )

    try:
        with console.status(f"Analysing {file.name}..."):
            result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Analysis interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        _fail(e, cfg.output.verbosity)
        return

    _print_result(result, file.name)


@app.command()
def reanalyse(
    candidate_id: Annotated[
        str,
        typer.Argument(help="Id of the stored candidate to re-score."),
    ],
    role_id: RoleOption = None,
    job_description: JobDescriptionOption = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Discard cached analysis jobs and always call the service.",
        ),
    ] = False,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
) -> None:
    """Re-score a stored candidate, reusing a matching analysis job when one exists."""
    cfg = _load(config, verbose, db)

    async def _run() -> AnalysisResult:
        async with SwimrRuntime(cfg, console=console) as runtime:
            job = await runtime.reanalyse(
                candidate_id,
                role_id=role_id,
                job_description=job_description,
                force=force,
            )
            console.print(f"[dim]Analysis job {job.id} ({job.status.value})[/dim]")
            return AnalysisResult.model_validate(job.result_json or {})

    try:
        with console.status(f"Analysing candidate {candidate_id}..."):
            result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Analysis interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        _fail(e, cfg.output.verbosity)
        return

    _print_result(result)


if __name__ == "__main__":
    app()
