"""Analysis job ledger: dedups remote analyses by content fingerprint.

Flow:
1. Look up a processing or completed job for (candidate, role, cv hash, context hash)
2. Otherwise insert a job row with status "processing"
3. Fire the remote analysis on the process-wide task supervisor
4. The remote side updates the row; subscribers are told through the change notifier
"""

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Optional

from swimr.db.notifier import ChangeNotifier, Subscription
from swimr.db.store import RowStore
from swimr.errors import JobNotFoundError, JobWaitTimeout
from swimr.jobs.fingerprint import context_hash, make_cache_key, quick_hash
from swimr.models.enums import AnalysisJobStatus
from swimr.models.jobs import AnalysisJob
from swimr.utils.tasks import TaskSupervisor

logger = logging.getLogger("swimr.jobs.ledger")

JOBS_TABLE = "analysis_jobs"

RemoteCall = Callable[[str, str, Optional[str]], Awaitable[Any]]
JobCallback = Callable[[AnalysisJob], None]


class AnalysisJobLedger:
    """Shared cache of remote analysis jobs.

    Construct one per process and pass it to every consumer.

    Note:
        find_existing_job followed by start_job is not atomic; two callers
        racing on the same key can both create a job.
    """

    def __init__(
        self,
        store: RowStore,
        remote_call: RemoteCall,
        supervisor: TaskSupervisor,
        notifier: Optional[ChangeNotifier] = None,
    ):
        """Initialize the ledger.

        Args:
            store: Row store holding the analysis_jobs table.
            remote_call: Coroutine function (job_id, cv_text, job_context) that runs the analysis.
            supervisor: Owner of detached background tasks.
            notifier: Realtime change notifier (defaults to the store's).
        """
        self._store = store
        self._remote_call = remote_call
        self._supervisor = supervisor
        self._notifier = notifier or store.notifier

        # Job ids whose remote call has been fired in this process
        self._fired: set[str] = set()
        self._listeners: dict[str, list[JobCallback]] = {}
        self._subscriptions: dict[str, Subscription] = {}

    @staticmethod
    def _key_filters(
        candidate_id: str,
        role_id: Optional[str],
        cv_text: str,
        job_context: Optional[str],
    ) -> dict[str, Any]:
        return {
            "candidate_id": candidate_id,
            "role_id": role_id or None,
            "cv_hash": quick_hash(cv_text),
            "job_context_hash": context_hash(job_context),
        }

    async def find_existing_job(
        self,
        candidate_id: str,
        role_id: Optional[str],
        cv_text: str,
        job_context: Optional[str],
    ) -> Optional[AnalysisJob]:
        """Find the most recent useful job for the given inputs.

        Returns:
            The newest processing or completed job, or None.
        """
        rows = await self._store.select(
            JOBS_TABLE,
            self._key_filters(candidate_id, role_id, cv_text, job_context),
            in_filters={"status": [AnalysisJobStatus.PROCESSING, AnalysisJobStatus.COMPLETED]},
            order_by="created_at",
            descending=True,
            limit=1,
        )
        return AnalysisJob.model_validate(rows[0]) if rows else None

    async def start_job(
        self,
        candidate_id: str,
        role_id: Optional[str],
        cv_text: str,
        job_context: Optional[str],
    ) -> AnalysisJob:
        """Record a new job and fire its remote analysis in the background.

        Returns:
            The new ledger entry, before the remote call completes.

        Raises:
            StoreError: If the job row cannot be created.
        """
        row = await self._store.insert(
            JOBS_TABLE,
            {
                **self._key_filters(candidate_id, role_id, cv_text, job_context),
                "job_context": job_context,
                "status": AnalysisJobStatus.PROCESSING,
            },
        )
        job = AnalysisJob.model_validate(row)
        logger.info(
            f"Started analysis job {job.id} for "
            f"{make_cache_key(candidate_id, role_id, cv_text, job_context)}"
        )

        self._fire_remote(job.id, cv_text, job_context)
        return job

    def _fire_remote(self, job_id: str, cv_text: str, job_context: Optional[str]) -> bool:
        if job_id in self._fired:
            logger.debug(f"Remote analysis for job {job_id} already fired")
            return False
        self._fired.add(job_id)
        self._supervisor.spawn(
            self._run_remote(job_id, cv_text, job_context),
            name=f"analysis-job-{job_id}",
        )
        return True

    async def _run_remote(self, job_id: str, cv_text: str, job_context: Optional[str]) -> None:
        try:
            await self._remote_call(job_id, cv_text, job_context)
        except Exception as e:
            # The job row is marked failed by the remote side, not here
            logger.error(f"Background analysis for job {job_id} failed: {e}")

    def was_fired(self, job_id: str) -> bool:
        return job_id in self._fired

    async def invalidate_job(
        self,
        candidate_id: str,
        role_id: Optional[str],
        cv_text: str,
        job_context: Optional[str],
    ) -> int:
        """Delete cached jobs for the inputs so the next request re-analyses.

        Returns:
            Number of ledger entries removed.
        """
        deleted = await self._store.delete(
            JOBS_TABLE,
            self._key_filters(candidate_id, role_id, cv_text, job_context),
        )
        logger.info(f"Invalidated {deleted} analysis job(s) for candidate {candidate_id}")
        return deleted

    def subscribe_to_job(self, job_id: str, callback: JobCallback) -> Callable[[], None]:
        """Register for updates to one job.

        Every callback is invoked with the updated record. Once the job turns
        terminal all callbacks for it are dropped automatically.

        Args:
            job_id: Job to watch.
            callback: Called with each updated AnalysisJob.

        Returns:
            Function removing just this callback.
        """
        self._listeners.setdefault(job_id, []).append(callback)

        if job_id not in self._subscriptions and self._notifier is not None:
            self._subscriptions[job_id] = self._notifier.subscribe(
                JOBS_TABLE,
                job_id,
                partial(self._on_job_update, job_id),
            )

        def unsubscribe() -> None:
            callbacks = self._listeners.get(job_id)
            if callbacks is None:
                return
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._teardown(job_id)

        return unsubscribe

    def listener_count(self, job_id: str) -> int:
        return len(self._listeners.get(job_id, []))

    def _on_job_update(self, job_id: str, row: dict[str, Any]) -> None:
        job = AnalysisJob.model_validate(row)
        for callback in list(self._listeners.get(job_id, [])):
            try:
                callback(job)
            except Exception:
                logger.exception(f"Listener for analysis job {job_id} raised")

        if job.is_terminal:
            self._teardown(job_id)

    def _teardown(self, job_id: str) -> None:
        subscription = self._subscriptions.pop(job_id, None)
        if subscription is not None:
            subscription.unsubscribe()
        self._listeners.pop(job_id, None)

    async def poll_job(self, job_id: str) -> Optional[AnalysisJob]:
        """Fetch the current ledger state of a job."""
        row = await self._store.get(JOBS_TABLE, job_id)
        return AnalysisJob.model_validate(row) if row else None

    async def wait_for_job(
        self,
        job_id: str,
        timeout: Optional[float] = None,
        poll_interval: float = 2.0,
    ) -> AnalysisJob:
        """Wait for a job to finish, by push notification or polling.

        Args:
            job_id: Job to wait for.
            timeout: Seconds to wait before giving up (None waits forever).
            poll_interval: Seconds between fallback polls.

        Returns:
            The terminal job record.

        Raises:
            JobNotFoundError: If the job row disappears.
            JobWaitTimeout: If the job is still processing after the timeout.
        """
        loop = asyncio.get_running_loop()
        done: asyncio.Future = loop.create_future()

        def on_update(job: AnalysisJob) -> None:
            if job.is_terminal and not done.done():
                done.set_result(job)

        async def poll() -> None:
            while not done.done():
                try:
                    job = await self.poll_job(job_id)
                except Exception as e:
                    if not done.done():
                        done.set_exception(e)
                    return
                if job is None:
                    if not done.done():
                        done.set_exception(JobNotFoundError(f"Analysis job {job_id} not found"))
                    return
                if job.is_terminal:
                    if not done.done():
                        done.set_result(job)
                    return
                await asyncio.sleep(poll_interval)

        unsubscribe = self.subscribe_to_job(job_id, on_update)
        poller = loop.create_task(poll(), name=f"poll-job-{job_id}")
        try:
            return await asyncio.wait_for(done, timeout)
        except asyncio.TimeoutError as e:
            raise JobWaitTimeout(f"Analysis job {job_id} still processing after {timeout}s") from e
        finally:
            poller.cancel()
            unsubscribe()

    async def analyse_candidate(
        self,
        candidate_id: str,
        role_id: Optional[str],
        cv_text: str,
        job_context: Optional[str],
        force: bool = False,
    ) -> AnalysisJob:
        """Reuse a cached job for the inputs or start a new one.

        Args:
            candidate_id: Candidate being analysed.
            role_id: Optional role the analysis is for.
            cv_text: CV text.
            job_context: Job context sent with the CV.
            force: Drop cached jobs and always start a fresh analysis.

        Returns:
            The existing or newly started job.
        """
        if force:
            await self.invalidate_job(candidate_id, role_id, cv_text, job_context)
        else:
            existing = await self.find_existing_job(candidate_id, role_id, cv_text, job_context)
            if existing is not None:
                logger.info(f"Reusing analysis job {existing.id} ({existing.status.value})")
                return existing

        return await self.start_job(candidate_id, role_id, cv_text, job_context)
