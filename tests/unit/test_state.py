"""Tests for run snapshot persistence, cancellation and the task supervisor."""

import asyncio
import logging

import aiosqlite
import pytest

from swimr.models.batch import BatchRun, BatchRunItem
from swimr.models.enums import BatchItemStatus
from swimr.orchestration.cancellation import CancellationToken
from swimr.orchestration.state import RUN_STATE_KEY, RunStateStore
from swimr.utils.tasks import TaskSupervisor


@pytest.fixture
def sample_run() -> BatchRun:
    return BatchRun(
        run_id="run-1",
        role_id="role-1",
        role_name="Data Engineer",
        job_context="Job Title: Data Engineer",
        items=[
            BatchRunItem(id="batch-1", staged_file_id="staged-1", file_name="a.pdf", cv_text="Alice"),
            BatchRunItem(
                id="batch-2",
                staged_file_id="staged-2",
                file_name="b.pdf",
                status=BatchItemStatus.FAILED,
                error="Text extraction failed: boom",
            ),
        ],
    )


class TestRunStateStore:
    """Tests for RunStateStore."""

    @pytest.mark.asyncio
    async def test_get_set_remove(self, run_state):
        """Test the key-value primitives."""
        assert await run_state.get("k") is None

        await run_state.set("k", "v1")
        await run_state.set("k", "v2")
        assert await run_state.get("k") == "v2"

        await run_state.remove("k")
        assert await run_state.get("k") is None

    @pytest.mark.asyncio
    async def test_save_and_load_run(self, run_state, sample_run):
        """Test a full snapshot round trip."""
        await run_state.save_run(sample_run)

        loaded = await run_state.load_run()
        assert loaded == sample_run
        assert loaded.items[1].error == "Text extraction failed: boom"

    @pytest.mark.asyncio
    async def test_survives_new_instance(self, tmp_path, sample_run):
        """Test that snapshots outlive the store object, as across restarts."""
        await RunStateStore(tmp_path / "state.db").save_run(sample_run)

        loaded = await RunStateStore(tmp_path / "state.db").load_run()
        assert loaded.run_id == "run-1"

    @pytest.mark.asyncio
    async def test_save_none_clears(self, run_state, sample_run):
        """Test that saving None removes the snapshot."""
        await run_state.save_run(sample_run)
        await run_state.save_run(None)

        assert await run_state.load_run() is None
        assert await run_state.get(RUN_STATE_KEY) is None

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_loads_as_none(self, run_state, caplog):
        """Test tolerance of unreadable snapshots."""
        await run_state.set(RUN_STATE_KEY, "{not json")
        with caplog.at_level(logging.WARNING, logger="swimr.orchestration.state"):
            assert await run_state.load_run() is None
        assert "unreadable" in caplog.text

        await run_state.set(RUN_STATE_KEY, '{"run_id": 5}')
        assert await run_state.load_run() is None

    @pytest.mark.asyncio
    async def test_schema(self, tmp_path):
        """Test the kv_store table layout."""
        store = RunStateStore(tmp_path / "state.db")
        await store.initialize()

        async with aiosqlite.connect(tmp_path / "state.db") as db:
            async with db.execute("PRAGMA table_info(kv_store)") as cursor:
                columns = [row[1] for row in await cursor.fetchall()]

        assert columns == ["key", "value", "updated_at"]


class TestCancellationToken:
    """Tests for CancellationToken."""

    @pytest.mark.asyncio
    async def test_cancel_and_reset(self):
        """Test flag transitions."""
        token = CancellationToken()
        assert token.cancelled is False

        token.cancel()
        assert token.cancelled is True

        token.reset()
        assert token.cancelled is False


class TestTaskSupervisor:
    """Tests for TaskSupervisor."""

    @pytest.mark.asyncio
    async def test_join_waits_for_spawned_work(self):
        """Test that join also waits for tasks spawned while joining."""
        supervisor = TaskSupervisor()
        done = []

        async def child():
            await asyncio.sleep(0)
            done.append("child")

        async def parent():
            await asyncio.sleep(0)
            supervisor.spawn(child(), name="child")
            done.append("parent")

        supervisor.spawn(parent(), name="parent")
        assert supervisor.active_count == 1

        await supervisor.join()
        assert done == ["parent", "child"]
        assert supervisor.active_count == 0

    @pytest.mark.asyncio
    async def test_failures_are_logged(self, caplog):
        """Test that a crashing task is logged, not raised."""
        supervisor = TaskSupervisor()

        async def crash():
            raise RuntimeError("kaboom")

        supervisor.spawn(crash(), name="crasher")
        await supervisor.join()

        assert "crasher" in caplog.text
        assert "kaboom" in caplog.text

    @pytest.mark.asyncio
    async def test_shutdown_cancels(self):
        """Test that shutdown cancels outstanding work."""
        supervisor = TaskSupervisor()
        task = supervisor.spawn(asyncio.sleep(60), name="sleeper")

        await supervisor.shutdown()

        assert task.cancelled()
        assert supervisor.active_count == 0
