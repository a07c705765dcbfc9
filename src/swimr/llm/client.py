"""HTTP client for the hosted analyze-cv function."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from swimr.config.defaults import ANALYZE_CV_PATH, DEFAULT_ANALYSIS_TIMEOUT
from swimr.errors import AnalysisError
from swimr.models.analysis import AnalysisResult

logger = logging.getLogger("swimr.llm.client")


class HttpAnalysisClient:
    """Calls the remote analysis endpoint over HTTP.

    Cancelling the task awaiting analyse() aborts the in-flight request.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_ANALYSIS_TIMEOUT,
        retry_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the hosted functions.
            api_key: Key sent as bearer token and apikey header.
            timeout: Request timeout in seconds.
            retry_attempts: Attempts for connection-level failures.
            client: Optional preconfigured httpx client (used in tests).
        """
        self._url = base_url.rstrip("/") + ANALYZE_CV_PATH
        self._api_key = api_key
        self._retry_attempts = retry_attempts
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["apikey"] = self._api_key
        return headers

    async def analyse(
        self,
        cv_text: str,
        job_context: Optional[str] = None,
        *,
        job_id: Optional[str] = None,
    ) -> AnalysisResult:
        """Send a CV for analysis.

        Args:
            cv_text: Extracted CV text.
            job_context: Optional job context.
            job_id: Optional ledger job id.

        Returns:
            Parsed AnalysisResult.

        Raises:
            AnalysisError: If the request fails or the service reports an error.
        """
        payload: dict[str, Any] = {"cv_text": cv_text, "job_description": job_context}
        if job_id is not None:
            payload["job_id"] = job_id

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=30),
                retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.post(
                        self._url,
                        json=payload,
                        headers=self._headers(),
                    )
        except httpx.HTTPError as e:
            raise AnalysisError(f"Analysis request failed: {e}") from e

        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> AnalysisResult:
        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("error") if isinstance(body, dict) else None
            logger.error(f"Analysis service returned {response.status_code}: {message}")
            raise AnalysisError(
                message or f"Analysis failed ({response.status_code})",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AnalysisError(f"Invalid JSON from analysis service: {e}") from e

        if not isinstance(data, dict):
            raise AnalysisError("Unexpected analysis response shape")
        if data.get("error"):
            raise AnalysisError(str(data["error"]), status_code=response.status_code)

        try:
            return AnalysisResult.model_validate(data)
        except ValidationError as e:
            raise AnalysisError(f"Malformed analysis result: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "HttpAnalysisClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
