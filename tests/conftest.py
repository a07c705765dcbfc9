"""Pytest configuration and fixtures."""

import asyncio
import io
import random
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import docx
import pytest

from swimr.config.models import StagingConfig
from swimr.db.notifier import ChangeNotifier
from swimr.db.store import RowStore
from swimr.errors import ExtractionError
from swimr.models.analysis import AnalysisResult, OverallScore
from swimr.models.staging import FileUpload
from swimr.orchestration.state import RunStateStore
from swimr.staging.queue import StagingQueue
from swimr.utils.tasks import TaskSupervisor


async def no_sleep(_delay: float) -> None:
    """Stand-in for asyncio.sleep that only yields to the loop."""
    await asyncio.sleep(0)


def make_result(score: float = 80.0, name: Optional[str] = None, **extra) -> AnalysisResult:
    """Build an analysis result with a composite score."""
    return AnalysisResult(
        candidate_name=name,
        overall_score=OverallScore(composite_score=score, recommendation="yes"),
        **extra,
    )


class FakeAnalysisClient:
    """Scripted analysis client that records calls in order.

    Responses are looked up by CV text; an exception instance is raised
    instead of returned. When ``gate`` is set, every call blocks on it.
    """

    def __init__(self, responses: Optional[dict] = None, default: Optional[AnalysisResult] = None):
        self.responses = responses or {}
        self.default = default or make_result()
        self.calls: list[tuple[str, Optional[str], Optional[str]]] = []
        self.gate: Optional[asyncio.Event] = None

    async def analyse(self, cv_text, job_context=None, *, job_id=None):
        self.calls.append((cv_text, job_context, job_id))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.get(cv_text, self.default)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def texts(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def aclose(self) -> None:
        pass


class FakeExtractor:
    """Decodes bytes as UTF-8; the payload b"broken" fails."""

    def __init__(self):
        self.calls: list[str] = []

    async def extract(self, file_name: str, data: bytes) -> str:
        self.calls.append(file_name)
        await asyncio.sleep(0)
        if data == b"broken":
            raise ExtractionError("Could not extract text from PDF. The file may be scanned images.")
        return data.decode("utf-8")


def make_docx(paragraphs: list[str], table: Optional[list[list[str]]] = None) -> bytes:
    """Build a DOCX document in memory."""
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table:
        grid = document.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, value in enumerate(row):
                grid.cell(r, c).text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


async def stage_files(queue: StagingQueue, files: dict[str, bytes]) -> list[str]:
    """Stage files, wait for their uploads and return their ids in input order."""
    staged = queue.add_files(FileUpload(file_name=name, content=data) for name, data in files.items())
    await queue.wait_for_uploads()
    return [sf.id for sf in staged]


@pytest.fixture
def staging_queue() -> StagingQueue:
    """Staging queue whose simulated uploads finish without real delays."""
    return StagingQueue(StagingConfig(), rng=random.Random(7), sleep=no_sleep)


@pytest.fixture
def changes() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def store(tmp_path: Path, changes: ChangeNotifier) -> RowStore:
    """Row store backed by a temporary SQLite file."""
    return RowStore(tmp_path / "swimr.db", notifier=changes)


@pytest.fixture
def run_state(tmp_path: Path) -> RunStateStore:
    """Run snapshot store backed by a temporary SQLite file."""
    return RunStateStore(tmp_path / "run-state.db")


@pytest.fixture
def supervisor() -> TaskSupervisor:
    return TaskSupervisor()


@pytest.fixture
def client() -> FakeAnalysisClient:
    return FakeAnalysisClient()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def notifier() -> MagicMock:
    """Notifier recording every notification."""
    return MagicMock()
