"""Completes ledger entries by running the remote analysis."""

import logging
from typing import Optional

from swimr.db.store import RowStore
from swimr.errors import AnalysisError
from swimr.llm.protocol import AnalysisClient
from swimr.models.enums import AnalysisJobStatus

logger = logging.getLogger("swimr.jobs.handler")


class AnalysisJobHandler:
    """Runs one analysis for a ledger job and records its outcome on the row.

    The row update is what wakes up subscribers waiting on the job.
    """

    def __init__(self, store: RowStore, client: AnalysisClient):
        """Initialize the handler.

        Args:
            store: Row store holding the analysis_jobs table.
            client: Remote analysis client.
        """
        self._store = store
        self._client = client

    async def __call__(self, job_id: str, cv_text: str, job_context: Optional[str]) -> None:
        """Analyse and mark the job completed or failed."""
        try:
            result = await self._client.analyse(cv_text, job_context, job_id=job_id)
        except AnalysisError as e:
            logger.warning(f"Analysis job {job_id} failed: {e}")
            await self._mark_failed(job_id, str(e))
            return
        except Exception as e:
            logger.exception(f"Analysis job {job_id} crashed: {e}")
            await self._mark_failed(job_id, str(e) or type(e).__name__)
            return

        await self._store.update(
            "analysis_jobs",
            job_id,
            {
                "status": AnalysisJobStatus.COMPLETED,
                "result_json": result.model_dump(mode="json"),
                "error_message": None,
            },
        )
        logger.info(f"Analysis job {job_id} completed (score {result.composite_score})")

    async def _mark_failed(self, job_id: str, message: str) -> None:
        await self._store.update(
            "analysis_jobs",
            job_id,
            {"status": AnalysisJobStatus.FAILED, "error_message": message},
        )
