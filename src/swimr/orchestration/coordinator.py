"""Batch run coordinator.

Drives the items of one batch run strictly one at a time:

    pending -> extracting -> pending (text set) -> analysing -> completed
    extracting | analysing -> failed

The whole run is written to the run state store after every transition so
another process can resume it.
"""

import asyncio
import itertools
import logging
import re
import time
from typing import Callable, Iterable, Optional

from swimr.db.store import RowStore
from swimr.errors import StoreError
from swimr.extraction.extractor import TextExtractor
from swimr.llm.protocol import AnalysisClient
from swimr.models.analysis import AnalysisResult
from swimr.models.batch import BatchRun, BatchRunItem
from swimr.models.enums import BatchItemStatus, NoticeLevel, StagedFileStatus
from swimr.orchestration.cancellation import CancellationToken
from swimr.orchestration.progress import Notifier
from swimr.orchestration.state import RunStateStore
from swimr.staging.queue import StagingQueue
from swimr.utils.tasks import TaskSupervisor

logger = logging.getLogger("swimr.orchestration.coordinator")

FILE_UNAVAILABLE_ERROR = "File data unavailable (lost after refresh)"

_EXTENSION_RE = re.compile(r"\.(pdf|docx)$", re.IGNORECASE)

RunListener = Callable[[BatchRun], None]


def candidate_name_from_file(file_name: str) -> str:
    """Default candidate name: the file name without its document extension."""
    return _EXTENSION_RE.sub("", file_name)


class _NullNotifier:
    def notify(self, title, description=None, level=NoticeLevel.INFO) -> None:
        pass


class BatchRunCoordinator:
    """Owns the single batch run slot and its sequential driver.

    Only the driver mutates item status. cancel_run and retry_failed set
    flags or restart the driver; they never touch items the driver is
    working on.
    """

    def __init__(
        self,
        staging_queue: StagingQueue,
        extractor: TextExtractor,
        client: AnalysisClient,
        store: RowStore,
        run_state: RunStateStore,
        notifier: Optional[Notifier] = None,
        supervisor: Optional[TaskSupervisor] = None,
    ):
        """Initialize the coordinator.

        Args:
            staging_queue: Source of staged files and target of status mirroring.
            extractor: Text extraction collaborator.
            client: Remote analysis collaborator.
            store: Row store receiving candidate records.
            run_state: Durable store for the run snapshot.
            notifier: User-facing notification sink.
            supervisor: Owner of the driver task (a private one if omitted).
        """
        self._staging = staging_queue
        self._extractor = extractor
        self._client = client
        self._store = store
        self._run_state = run_state
        self._notifier = notifier or _NullNotifier()
        self._supervisor = supervisor or TaskSupervisor()

        self._run: Optional[BatchRun] = None
        self._token = CancellationToken()
        self._processing = False
        self._driver: Optional[asyncio.Task] = None
        self._resume_attempted = False
        self._listeners: list[RunListener] = []
        self._item_ids = itertools.count(1)

    @property
    def run(self) -> Optional[BatchRun]:
        return self._run

    @property
    def is_running(self) -> bool:
        """Whether the run slot is taken by an active run."""
        return self._run is not None and self._run.active

    @property
    def is_processing(self) -> bool:
        """Whether a driver loop is scheduled or executing."""
        return self._processing or (self._driver is not None and not self._driver.done())

    def add_listener(self, callback: RunListener) -> Callable[[], None]:
        """Observe the run after every persisted transition.

        Args:
            callback: Called with a copy of the run.

        Returns:
            Function removing the listener.
        """
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    async def load(self) -> Optional[BatchRun]:
        """Load the persisted run into the coordinator."""
        self._run = await self._run_state.load_run()
        if self._run is not None:
            logger.debug(
                f"Loaded run {self._run.run_id} "
                f"(active={self._run.active}, {self._run.total_count} items)"
            )
        return self._run

    async def _persist(self) -> None:
        if self._run is None:
            return
        try:
            await self._run_state.save_run(self._run)
        except StoreError as e:
            logger.error(f"Could not persist run {self._run.run_id}: {e}")

        snapshot = self._run.model_copy(deep=True)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Run listener raised")

    async def _transition(self, item: BatchRunItem, status: BatchItemStatus, **fields) -> None:
        item.status = status
        for name, value in fields.items():
            setattr(item, name, value)
        if status == BatchItemStatus.FAILED:
            logger.info(f"{item.file_name}: {status.value} ({item.error})")
        else:
            logger.info(f"{item.file_name}: {status.value}")
        await self._persist()

    def _mirror(self, item: BatchRunItem, **patch) -> None:
        # One-way: the driver updates the staging view, never the reverse
        self._staging.update_file(item.staged_file_id, **patch)

    def _launch_driver(self) -> asyncio.Task:
        self._token.reset()
        self._driver = self._supervisor.spawn(
            self.process_queue(),
            name=f"batch-driver-{self._run.run_id}",
        )
        return self._driver

    async def start_run(
        self,
        staged_file_ids: Iterable[str],
        role_id: Optional[str] = None,
        role_name: Optional[str] = None,
        job_context: Optional[str] = None,
    ) -> Optional[BatchRun]:
        """Create a run over the given staged files and start driving it.

        Refusals are reported through the notifier and leave all state
        untouched.

        Args:
            staged_file_ids: Staged files to analyse, in processing order.
            role_id: Optional role the run analyses against.
            role_name: Display name of that role.
            job_context: Job context sent with every CV.

        Returns:
            The new run, or None if it was refused.
        """
        staged_file_ids = list(staged_file_ids)

        if self.is_running or self.is_processing:
            self._notifier.notify("A batch analysis is already running", level=NoticeLevel.ERROR)
            return None

        if not staged_file_ids:
            self._notifier.notify("Select at least one CV to analyse.", level=NoticeLevel.ERROR)
            return None

        items = []
        for staged_file_id in staged_file_ids:
            staged = self._staging.get_file(staged_file_id)
            items.append(
                BatchRunItem(
                    id=f"batch-{next(self._item_ids)}",
                    staged_file_id=staged_file_id,
                    file_name=staged.file_name if staged else "Unknown",
                    cv_text=staged.extracted_text if staged else None,
                )
            )

        self._run = BatchRun(
            run_id=f"run-{int(time.time() * 1000)}",
            role_id=role_id,
            role_name=role_name,
            job_context=job_context,
            items=items,
        )
        logger.info(f"Starting run {self._run.run_id} with {len(items)} item(s)")

        await self._persist()
        self._launch_driver()
        return self._run

    async def process_queue(self) -> None:
        """Sequential driver. At most one executes at a time."""
        if self._processing:
            logger.debug("Driver already running")
            return
        if self._run is None:
            return

        self._processing = True
        run = self._run

        try:
            for item in run.items:
                if self._token.cancelled:
                    break
                if item.status.is_terminal:
                    continue

                if not item.cv_text:
                    await self._extract(item)
                    if item.status.is_terminal:
                        continue

                if self._token.cancelled:
                    break

                if not await self._analyse(item, run):
                    break
        except asyncio.CancelledError:
            await self._persist_interrupted(run)
            raise
        finally:
            self._processing = False

        cancelled = self._token.cancelled
        if cancelled:
            run.active = False
            run.cancelled = True
        elif run.all_terminal:
            run.active = False
        await self._persist()

        if run.all_terminal and not cancelled:
            description = f"{run.completed_count} completed"
            if run.failed_count > 0:
                description += f", {run.failed_count} failed"
            self._notifier.notify(
                "Batch analysis complete",
                description,
                level=NoticeLevel.SUCCESS,
            )
        logger.info(
            f"Run {run.run_id} driver stopped: {run.completed_count} completed, "
            f"{run.failed_count} failed, cancelled={cancelled}"
        )

    async def _persist_interrupted(self, run: BatchRun) -> None:
        """Save a run whose driver task was cancelled mid-item.

        In-flight items go back to pending; a requested cancel is recorded
        so the run is not resumed later.
        """
        for item in run.items:
            if item.status.is_in_flight:
                item.status = BatchItemStatus.PENDING
                self._mirror(item, status=StagedFileStatus.PENDING)
        if self._token.cancelled:
            run.active = False
            run.cancelled = True
        logger.info(f"Run {run.run_id} driver interrupted")
        await self._persist()

    async def _extract(self, item: BatchRunItem) -> None:
        await self._transition(item, BatchItemStatus.EXTRACTING)

        staged = self._staging.get_file(item.staged_file_id)
        if staged is None or not staged.has_content:
            await self._transition(item, BatchItemStatus.FAILED, error=FILE_UNAVAILABLE_ERROR)
            self._mirror(item, status=StagedFileStatus.FAILED)
            return

        try:
            text = await self._extractor.extract(staged.file_name, staged.content)
        except Exception as e:
            logger.warning(f"Extraction of {item.file_name} failed: {e}")
            await self._transition(
                item,
                BatchItemStatus.FAILED,
                error=f"Text extraction failed: {e}",
            )
            self._mirror(item, status=StagedFileStatus.FAILED)
            return

        await self._transition(item, BatchItemStatus.PENDING, cv_text=text)
        self._mirror(item, extracted_text=text)

    async def _analyse(self, item: BatchRunItem, run: BatchRun) -> bool:
        """Analyse one item and store the candidate.

        Returns:
            False if the driver should stop because the run was cancelled.
        """
        await self._transition(item, BatchItemStatus.ANALYSING)
        self._mirror(item, status=StagedFileStatus.ANALYSING)

        try:
            result = await self._client.analyse(item.cv_text, run.job_context)
            if self._token.cancelled:
                # Late result for a cancelled run is dropped
                logger.info(f"Discarding result for {item.file_name}: run was cancelled")
                await self._revert_to_pending(item)
                return False
            candidate_id, candidate_name = await self._save_candidate(item, result, run)
        except Exception as e:
            if self._token.cancelled:
                await self._revert_to_pending(item)
                return False
            logger.error(f"Batch analysis of {item.file_name} failed: {e}")
            await self._transition(item, BatchItemStatus.FAILED, error=str(e) or type(e).__name__)
            self._mirror(item, status=StagedFileStatus.FAILED)
            return True

        await self._transition(item, BatchItemStatus.COMPLETED, candidate_id=candidate_id, error=None)
        self._mirror(item, status=StagedFileStatus.DONE)

        score = result.overall_score.composite_score if result.overall_score else None
        self._notifier.notify(
            f"✓ {candidate_name} analysed",
            f"Score: {score if score is not None else 'N/A'}",
            level=NoticeLevel.SUCCESS,
        )
        return True

    async def _revert_to_pending(self, item: BatchRunItem) -> None:
        await self._transition(item, BatchItemStatus.PENDING)
        self._mirror(item, status=StagedFileStatus.PENDING)

    async def _save_candidate(
        self,
        item: BatchRunItem,
        result: AnalysisResult,
        run: BatchRun,
    ) -> tuple[str, str]:
        """Write the candidate record, preferring an upsert on the candidate name.

        Returns:
            Tuple of (candidate id, candidate name).

        Raises:
            StoreError: If neither upsert nor insert succeeds.
        """
        candidate_name = result.candidate_name or candidate_name_from_file(item.file_name)
        record = {
            "candidate_name": candidate_name,
            "email": result.email or None,
            "cv_text": item.cv_text,
            "analysis_json": result.model_dump(mode="json"),
            "overall_score": result.composite_score,
            "recommendation": result.recommendation,
            "job_description": run.job_context,
            "status": "pending",
        }

        try:
            saved = await self._store.upsert("candidates", record, on_conflict="candidate_name")
        except StoreError as e:
            logger.debug(f"Upsert of {candidate_name} rejected ({e}), inserting instead")
            try:
                saved = await self._store.insert("candidates", record)
            except StoreError as insert_error:
                raise StoreError(f"Failed to save candidate: {insert_error}") from insert_error

        return saved["id"], candidate_name

    def request_cancel(self) -> bool:
        """Flag the run as cancelled without waiting for any I/O.

        Safe to call from signal handlers and listeners. The driver persists
        the cancelled run when it stops.

        Returns:
            True if there was a run to cancel.
        """
        if self._run is None:
            return False

        self._token.cancel()
        self._run.active = False
        self._run.cancelled = True
        logger.info(f"Run {self._run.run_id} cancelled")
        self._notifier.notify("Batch analysis cancelled")
        return True

    async def cancel_run(self) -> None:
        """Stop starting new work.

        The run is marked inactive immediately; an in-flight analysis is left
        to finish and its result is discarded.
        """
        if self.request_cancel():
            await self._persist()

    async def retry_failed(self) -> bool:
        """Reset failed items to pending and restart the driver.

        Returns:
            True if the driver was restarted.
        """
        if self._run is None:
            return False

        if self.is_processing:
            self._notifier.notify(
                "The previous batch is still finishing",
                "Try again once the current analysis completes.",
                level=NoticeLevel.WARNING,
            )
            return False

        retried = 0
        for item in self._run.items:
            if item.status == BatchItemStatus.FAILED:
                item.status = BatchItemStatus.PENDING
                item.error = None
                retried += 1

        self._run.active = True
        self._run.cancelled = False
        logger.info(f"Retrying {retried} failed item(s) in run {self._run.run_id}")

        await self._persist()
        self._launch_driver()
        return True

    async def resume(self) -> bool:
        """Pick up an active run left behind by a previous process.

        Runs at most once per coordinator. Items stuck mid-processing are
        reset to pending before the driver restarts.

        Returns:
            True if a driver was started.
        """
        if self._resume_attempted:
            return False
        self._resume_attempted = True

        if self._run is None:
            await self.load()

        run = self._run
        if run is None or not run.active or self.is_processing:
            return False
        if not run.has_unfinished:
            return False

        for item in run.items:
            if item.status.is_in_flight:
                item.status = BatchItemStatus.PENDING

        logger.info(f"Resuming run {run.run_id}")
        await self._persist()
        self._launch_driver()
        return True

    async def wait_idle(self) -> Optional[BatchRun]:
        """Wait for the current driver, if any, to finish."""
        while self._driver is not None and not self._driver.done():
            await asyncio.gather(self._driver, return_exceptions=True)
        return self._run
