"""Protocol for the remote CV analysis service."""

from typing import Optional, Protocol, runtime_checkable

from swimr.models.analysis import AnalysisResult


@runtime_checkable
class AnalysisClient(Protocol):
    """Protocol for remote analysis backends.

    The scoring itself happens remotely; implementations only carry the
    CV text and job context there and bring the structured result back.
    """

    async def analyse(
        self,
        cv_text: str,
        job_context: Optional[str] = None,
        *,
        job_id: Optional[str] = None,
    ) -> AnalysisResult:
        """Score a CV against an optional job context.

        Args:
            cv_text: Extracted CV text.
            job_context: Optional role/job description context.
            job_id: Optional ledger job id the remote side should report against.

        Returns:
            The structured analysis result.

        Raises:
            AnalysisError: On a non-success response or an error body.
        """
        ...
