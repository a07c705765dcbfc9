"""Main orchestration runner: wires the engine's collaborators from configuration."""

import logging
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console

from swimr.config.models import SwimrConfig
from swimr.db.notifier import ChangeNotifier
from swimr.db.store import RowStore
from swimr.errors import AnalysisError, ExtractionError, SwimrError
from swimr.extraction.extractor import DocumentTextExtractor
from swimr.jobs.handler import AnalysisJobHandler
from swimr.jobs.ledger import AnalysisJobLedger
from swimr.llm.client import HttpAnalysisClient
from swimr.models.analysis import AnalysisResult
from swimr.models.batch import BatchRun
from swimr.models.enums import AnalysisJobStatus, NoticeLevel
from swimr.models.jobs import AnalysisJob
from swimr.models.role import Role, build_job_context
from swimr.models.staging import FileUpload
from swimr.orchestration.analyser import SingleItemAnalyser
from swimr.orchestration.coordinator import BatchRunCoordinator
from swimr.orchestration.progress import ConsoleNotifier, Notifier, RunProgressTracker
from swimr.orchestration.state import RunStateStore
from swimr.staging.queue import StagingQueue
from swimr.utils.file_utils import format_size, is_supported_document, read_bytes_async
from swimr.utils.tasks import TaskSupervisor

logger = logging.getLogger("swimr.orchestration.runner")


class SwimrRuntime:
    """One process worth of engine state.

    Holds the single staging queue, job ledger, task supervisor and batch
    coordinator, so every consumer shares them.
    """

    def __init__(
        self,
        config: SwimrConfig,
        console: Optional[Console] = None,
        notifier: Optional[Notifier] = None,
        client: Optional[HttpAnalysisClient] = None,
    ):
        """Initialize the runtime.

        Args:
            config: Engine configuration.
            console: Rich console for notifications.
            notifier: Notification sink (a ConsoleNotifier if not provided).
            client: Analysis client (built from config if not provided).
        """
        self._config = config
        self.supervisor = TaskSupervisor()
        self.changes = ChangeNotifier()
        self.store = RowStore(
            config.storage.db_path,
            notifier=self.changes,
            candidate_name_unique=config.storage.candidate_name_unique,
        )
        self.run_state = RunStateStore(config.storage.run_state_path)
        self.client = client or HttpAnalysisClient(
            base_url=config.analysis.endpoint_url,
            api_key=config.analysis.api_key,
            timeout=config.analysis.timeout_seconds,
            retry_attempts=config.analysis.retry_attempts,
        )
        self.extractor = DocumentTextExtractor()
        self.staging = StagingQueue(config.staging)
        self.notifier = notifier or ConsoleNotifier(console)

        self.ledger = AnalysisJobLedger(
            store=self.store,
            remote_call=AnalysisJobHandler(self.store, self.client),
            supervisor=self.supervisor,
            notifier=self.changes,
        )
        self.coordinator = BatchRunCoordinator(
            staging_queue=self.staging,
            extractor=self.extractor,
            client=self.client,
            store=self.store,
            run_state=self.run_state,
            notifier=self.notifier,
            supervisor=self.supervisor,
        )
        self.analyser = SingleItemAnalyser(
            client=self.client,
            extractor=self.extractor,
            notifier=self.notifier,
            supervisor=self.supervisor,
        )
        self._initialized = False

    async def _initialize(self) -> None:
        """Initialize storage and load the persisted run lazily."""
        if self._initialized:
            return
        await self.store.initialize()
        await self.run_state.initialize()
        await self.coordinator.load()
        self._initialized = True

    async def resolve_role(self, role_id: str) -> Role:
        """Fetch a role from the row store.

        Raises:
            SwimrError: If no such role exists.
        """
        await self._initialize()
        row = await self.store.get("roles", role_id)
        if row is None:
            raise SwimrError(f"Role not found: {role_id}")
        return Role.model_validate({k: v for k, v in row.items() if v is not None})

    async def _job_context(
        self,
        role_id: Optional[str],
        job_description: Optional[str],
    ) -> tuple[Optional[Role], Optional[str]]:
        role = await self.resolve_role(role_id) if role_id else None
        return role, build_job_context(role, job_description)

    async def stage_paths(self, paths: Iterable[Path]) -> list[str]:
        """Read files into the staging queue and wait for their uploads.

        Returns:
            Ids of the staged files now pending.
        """
        uploads = []
        for path in paths:
            if not is_supported_document(path):
                self.notifier.notify(
                    f"Skipped {path.name}",
                    "Only PDF and DOCX files are supported.",
                    level=NoticeLevel.WARNING,
                )
                continue
            content = await read_bytes_async(path)
            logger.debug(f"Staging {path.name} ({format_size(len(content))})")
            uploads.append(FileUpload(file_name=path.name, content=content))

        staged = self.staging.add_files(uploads)
        await self.staging.wait_for_uploads()

        staged_ids = {sf.id for sf in staged}
        return [sf.id for sf in self.staging.get_pending_files() if sf.id in staged_ids]

    async def run_batch(
        self,
        paths: Iterable[Path],
        role_id: Optional[str] = None,
        job_description: Optional[str] = None,
        tracker: Optional[RunProgressTracker] = None,
    ) -> Optional[BatchRun]:
        """Stage files and drive a batch run over them to completion.

        Args:
            paths: CV files to analyse.
            role_id: Optional role to analyse against.
            job_description: Optional free-text job description.
            tracker: Optional progress display.

        Returns:
            The finished run, or None if it was refused.
        """
        await self._initialize()

        if self.coordinator.is_running:
            self.notifier.notify(
                "An unfinished batch run exists",
                "Run `swimr resume` to finish it first.",
                level=NoticeLevel.WARNING,
            )
            return None

        role, job_context = await self._job_context(role_id, job_description)
        staged_ids = await self.stage_paths(paths)

        remove_listener = self.coordinator.add_listener(tracker.update) if tracker else None
        try:
            run = await self.coordinator.start_run(
                staged_ids,
                role_id=role.id if role else None,
                role_name=role.job_title if role else None,
                job_context=job_context,
            )
            if run is None:
                return None
            return await self.coordinator.wait_idle()
        finally:
            if remove_listener is not None:
                remove_listener()

    async def resume(self, tracker: Optional[RunProgressTracker] = None) -> Optional[BatchRun]:
        """Resume the persisted run, if it was left active."""
        await self._initialize()

        remove_listener = self.coordinator.add_listener(tracker.update) if tracker else None
        try:
            if await self.coordinator.resume():
                await self.coordinator.wait_idle()
            return self.coordinator.run
        finally:
            if remove_listener is not None:
                remove_listener()

    async def retry(self, tracker: Optional[RunProgressTracker] = None) -> Optional[BatchRun]:
        """Retry the failed items of the persisted run.

        Raises:
            SwimrError: If there is no recorded run.
        """
        await self._initialize()
        if self.coordinator.run is None:
            raise SwimrError("No batch run to retry")

        remove_listener = self.coordinator.add_listener(tracker.update) if tracker else None
        try:
            if await self.coordinator.retry_failed():
                await self.coordinator.wait_idle()
            return self.coordinator.run
        finally:
            if remove_listener is not None:
                remove_listener()

    async def load_run(self) -> Optional[BatchRun]:
        await self._initialize()
        return self.coordinator.run

    async def analyse_file(
        self,
        path: Path,
        role_id: Optional[str] = None,
        job_description: Optional[str] = None,
    ) -> AnalysisResult:
        """Analyse a single CV outside of any batch.

        Raises:
            ExtractionError: If no text could be extracted.
            AnalysisError: If the analysis fails.
        """
        await self._initialize()
        _, job_context = await self._job_context(role_id, job_description)

        text = await self.analyser.load_file(path.name, await read_bytes_async(path))
        if text is None:
            raise ExtractionError(f"Could not extract text from {path.name}")

        self.analyser.analyse(text, job_context)
        result = await self.analyser.wait()
        if result is None:
            raise AnalysisError(self.analyser.error or "Analysis failed")
        return result

    async def reanalyse(
        self,
        candidate_id: str,
        role_id: Optional[str] = None,
        job_description: Optional[str] = None,
        force: bool = False,
    ) -> AnalysisJob:
        """Re-score a stored candidate through the job ledger.

        A matching processing or completed job is reused unless forced. The
        completed result is written back onto the candidate.

        Raises:
            SwimrError: If the candidate is missing or has no CV text.
            AnalysisError: If the job failed.
        """
        await self._initialize()

        candidate = await self.store.get("candidates", candidate_id)
        if candidate is None:
            raise SwimrError(f"Candidate not found: {candidate_id}")
        cv_text = candidate.get("cv_text")
        if not cv_text:
            raise SwimrError(f"Candidate {candidate_id} has no CV text")

        if role_id or job_description:
            _, job_context = await self._job_context(role_id, job_description)
        else:
            job_context = candidate.get("job_description")

        job = await self.ledger.analyse_candidate(
            candidate_id, role_id, cv_text, job_context, force=force
        )
        if not job.is_terminal:
            job = await self.ledger.wait_for_job(
                job.id,
                timeout=self._config.jobs.wait_timeout_seconds,
                poll_interval=self._config.jobs.poll_interval_seconds,
            )

        if job.status == AnalysisJobStatus.FAILED:
            raise AnalysisError(job.error_message or "Analysis failed")

        result = AnalysisResult.model_validate(job.result_json or {})
        await self.store.update(
            "candidates",
            candidate_id,
            {
                "analysis_json": result.model_dump(mode="json"),
                "overall_score": result.composite_score,
                "recommendation": result.recommendation,
                "job_description": job_context,
            },
        )
        logger.info(f"Candidate {candidate_id} updated from job {job.id}")
        return job

    async def aclose(self) -> None:
        """Abandon uploads, cancel background work and close the HTTP client."""
        await self.staging.close()
        await self.supervisor.shutdown()
        await self.client.aclose()

    async def __aenter__(self) -> "SwimrRuntime":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
