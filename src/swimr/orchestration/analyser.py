"""Single-item analyser: one ad-hoc analysis at a time, newest call wins."""

import asyncio
import logging
from typing import Optional

from swimr.extraction.extractor import TextExtractor
from swimr.llm.protocol import AnalysisClient
from swimr.models.analysis import AnalysisResult
from swimr.models.enums import NoticeLevel
from swimr.orchestration.progress import Notifier
from swimr.utils.tasks import TaskSupervisor

logger = logging.getLogger("swimr.orchestration.analyser")


class SingleItemAnalyser:
    """Drives one analysis outside of a batch.

    Starting a new analysis cancels the previous in-flight one, which aborts
    its HTTP request. Nothing else cancels it: the task belongs to the
    supervisor, not to whoever started it.
    """

    def __init__(
        self,
        client: AnalysisClient,
        extractor: Optional[TextExtractor] = None,
        notifier: Optional[Notifier] = None,
        supervisor: Optional[TaskSupervisor] = None,
    ):
        """Initialize the analyser.

        Args:
            client: Remote analysis collaborator.
            extractor: Text extraction collaborator for load_file.
            notifier: User-facing notification sink.
            supervisor: Owner of analysis tasks (a private one if omitted).
        """
        self._client = client
        self._extractor = extractor
        self._notifier = notifier
        self._supervisor = supervisor or TaskSupervisor()

        self._inflight: Optional[asyncio.Task] = None
        self.file_name: Optional[str] = None
        self.extracted_text: str = ""
        self.is_extracting = False
        self.is_analysing = False
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[str] = None

    def _notify(self, title: str, description: Optional[str], level: NoticeLevel) -> None:
        if self._notifier is not None:
            self._notifier.notify(title, description, level=level)

    async def load_file(self, file_name: str, data: bytes) -> Optional[str]:
        """Extract the text of a newly chosen file.

        Clears any previous result. An extraction failure is reported to the
        user and leaves no file selected.

        Args:
            file_name: Name of the file (used to pick the parser).
            data: Raw file content.

        Returns:
            Extracted text, or None if extraction failed.
        """
        if self._extractor is None:
            raise RuntimeError("No text extractor configured")

        self.file_name = file_name
        self.result = None
        self.error = None
        self.extracted_text = ""
        self.is_extracting = True

        try:
            text = await self._extractor.extract(file_name, data)
        except Exception as e:
            logger.error(f"Extraction error for {file_name}: {e}")
            self._notify(
                "Text extraction failed",
                str(e) or "Could not extract text from the file.",
                NoticeLevel.ERROR,
            )
            self.file_name = None
            return None
        finally:
            self.is_extracting = False

        self.extracted_text = text
        return text

    def analyse(
        self,
        text: Optional[str] = None,
        job_context: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """Start an analysis, superseding any in-flight one.

        Must be called from within a running event loop.

        Args:
            text: CV text (defaults to the text from load_file).
            job_context: Optional job context.

        Returns:
            The analysis task, or None if there is no text to analyse.
        """
        text = text or self.extracted_text
        if not text:
            return None

        if self._inflight is not None and not self._inflight.done():
            logger.debug("Superseding in-flight analysis")
            self._inflight.cancel()

        self.is_analysing = True
        self.result = None
        self.error = None

        task = self._supervisor.spawn(self._run(text, job_context), name="single-analysis")
        self._inflight = task
        return task

    async def _run(self, text: str, job_context: Optional[str]) -> Optional[AnalysisResult]:
        try:
            result = await self._client.analyse(text, job_context)
        except asyncio.CancelledError:
            logger.debug("Analysis cancelled")
            raise
        except Exception as e:
            if asyncio.current_task() is not self._inflight:
                return None
            logger.error(f"Analysis error: {e}")
            self.error = str(e) or type(e).__name__
            self.is_analysing = False
            self._inflight = None
            self._notify("Analysis failed", self.error, NoticeLevel.ERROR)
            return None

        if asyncio.current_task() is not self._inflight:
            return None

        self.result = result
        self.is_analysing = False
        self._inflight = None
        return result

    async def wait(self) -> Optional[AnalysisResult]:
        """Wait for the current analysis, following any supersession."""
        while self._inflight is not None:
            task = self._inflight
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
            except Exception:
                logger.debug("Analysis task ended with an error", exc_info=True)
            if self._inflight is task:
                break
        return self.result

    def cancel(self) -> None:
        """Abort the in-flight analysis, if any."""
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        self.is_analysing = False
