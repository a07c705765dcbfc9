"""Tests for the row store and change notifier."""

import pytest

from swimr.db.notifier import ChangeEvent, ChangeNotifier
from swimr.db.store import RowStore
from swimr.errors import StoreError, UpsertNotSupportedError
from swimr.models.enums import AnalysisJobStatus


def job_row(candidate_id: str = "cand-1", role_id=None, status=AnalysisJobStatus.PROCESSING) -> dict:
    return {
        "candidate_id": candidate_id,
        "role_id": role_id,
        "cv_hash": "abc",
        "job_context_hash": "0",
        "status": status,
    }


class TestRowStore:
    """Tests for RowStore."""

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, store):
        """Test schema creation."""
        await store.initialize()
        await store.initialize()
        assert store._initialized is True

    @pytest.mark.asyncio
    async def test_insert_generates_id_and_timestamps(self, store):
        """Test that inserts fill in id, created_at and updated_at."""
        row = await store.insert("analysis_jobs", job_row())

        assert row["id"]
        assert row["created_at"]
        assert row["updated_at"] == row["created_at"]
        assert row["status"] == "processing"
        assert row["role_id"] is None

    @pytest.mark.asyncio
    async def test_json_columns_round_trip(self, store):
        """Test transparent JSON encoding."""
        row = await store.insert(
            "roles",
            {
                "job_title": "Data Engineer",
                "required_skills": ["Python", "SQL"],
                "target_universities": [{"name": "MIT", "required_gpa": 3.5}],
            },
        )

        fetched = await store.get("roles", row["id"])
        assert fetched["required_skills"] == ["Python", "SQL"]
        assert fetched["target_universities"][0]["required_gpa"] == 3.5

    @pytest.mark.asyncio
    async def test_select_filters(self, store):
        """Test equality, NULL and membership filters."""
        await store.insert("analysis_jobs", job_row("cand-1"))
        await store.insert("analysis_jobs", job_row("cand-1", role_id="role-1"))
        await store.insert("analysis_jobs", job_row("cand-1", status=AnalysisJobStatus.FAILED))
        await store.insert("analysis_jobs", job_row("cand-2"))

        rows = await store.select("analysis_jobs", {"candidate_id": "cand-1", "role_id": None})
        assert len(rows) == 2

        rows = await store.select(
            "analysis_jobs",
            {"candidate_id": "cand-1", "role_id": None},
            in_filters={"status": [AnalysisJobStatus.PROCESSING, AnalysisJobStatus.COMPLETED]},
        )
        assert len(rows) == 1

        assert await store.select("analysis_jobs", in_filters={"status": []}) == []

    @pytest.mark.asyncio
    async def test_select_order_and_limit(self, store):
        """Test newest-first ordering with ties broken by insertion order."""
        first = await store.insert("analysis_jobs", job_row())
        second = await store.insert("analysis_jobs", job_row())

        rows = await store.select("analysis_jobs", order_by="created_at", descending=True, limit=1)
        assert rows[0]["id"] == second["id"]

        rows = await store.select("analysis_jobs", order_by="created_at")
        assert [r["id"] for r in rows] == [first["id"], second["id"]]

    @pytest.mark.asyncio
    async def test_update_merges_and_touches_timestamp(self, store):
        """Test merge-patch semantics."""
        row = await store.insert("analysis_jobs", job_row())

        updated = await store.update(
            "analysis_jobs",
            row["id"],
            {"status": AnalysisJobStatus.COMPLETED, "result_json": {"score": 1}},
        )

        assert updated["status"] == "completed"
        assert updated["result_json"] == {"score": 1}
        assert updated["candidate_id"] == "cand-1"
        assert updated["created_at"] == row["created_at"]
        assert updated["updated_at"] >= row["updated_at"]

    @pytest.mark.asyncio
    async def test_update_missing_row(self, store):
        """Test that updating an unknown id returns None."""
        assert await store.update("analysis_jobs", "missing", {"status": "failed"}) is None

    @pytest.mark.asyncio
    async def test_delete(self, store):
        """Test filtered deletes."""
        await store.insert("analysis_jobs", job_row("cand-1"))
        await store.insert("analysis_jobs", job_row("cand-2"))

        assert await store.delete("analysis_jobs", {"candidate_id": "cand-1"}) == 1
        assert len(await store.select("analysis_jobs")) == 1

    @pytest.mark.asyncio
    async def test_delete_requires_filters(self, store):
        """Test that a bare delete is refused."""
        with pytest.raises(StoreError):
            await store.delete("analysis_jobs", {})

    @pytest.mark.asyncio
    async def test_unknown_table_and_column(self, store):
        """Test schema validation of names."""
        with pytest.raises(StoreError):
            await store.select("users")
        with pytest.raises(StoreError):
            await store.select("candidates", {"name; DROP TABLE candidates": "x"})
        with pytest.raises(StoreError):
            await store.insert("candidates", {"candidate_name": "x", "nickname": "y"})

    @pytest.mark.asyncio
    async def test_upsert_without_unique_constraint(self, store):
        """Test that upsert reports missing unique constraints."""
        with pytest.raises(UpsertNotSupportedError):
            await store.upsert("candidates", {"candidate_name": "Alice"}, on_conflict="candidate_name")

    @pytest.mark.asyncio
    async def test_upsert_with_unique_constraint(self, tmp_path):
        """Test insert-or-update on the conflict column."""
        store = RowStore(tmp_path / "unique.db", candidate_name_unique=True)

        first = await store.upsert(
            "candidates",
            {"candidate_name": "Alice", "overall_score": 60},
            on_conflict="candidate_name",
        )
        second = await store.upsert(
            "candidates",
            {"candidate_name": "Alice", "overall_score": 75},
            on_conflict="candidate_name",
        )

        assert second["id"] == first["id"]
        assert second["overall_score"] == 75
        assert len(await store.select("candidates")) == 1

    @pytest.mark.asyncio
    async def test_upsert_requires_conflict_value(self, tmp_path):
        """Test that the conflict column must be provided."""
        store = RowStore(tmp_path / "unique.db", candidate_name_unique=True)
        with pytest.raises(StoreError):
            await store.upsert("candidates", {"email": "a@example.com"}, on_conflict="candidate_name")


class TestChangeNotifications:
    """Tests for realtime notifications from the store."""

    @pytest.mark.asyncio
    async def test_update_publishes_post_change_row(self, store, changes):
        """Test that subscribers see the updated row."""
        row = await store.insert("analysis_jobs", job_row())
        received = []
        changes.subscribe("analysis_jobs", row["id"], received.append)

        await store.update("analysis_jobs", row["id"], {"status": AnalysisJobStatus.COMPLETED})

        assert len(received) == 1
        assert received[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_insert_event_is_separate(self, store, changes):
        """Test that UPDATE subscribers are not told about inserts."""
        received = []
        row = await store.insert("analysis_jobs", job_row())
        changes.subscribe("analysis_jobs", row["id"], received.append, event=ChangeEvent.INSERT)
        changes.subscribe("analysis_jobs", "other-id", received.append)

        await store.update("analysis_jobs", row["id"], {"error_message": "x"})
        assert received == []

    def test_unsubscribe(self):
        """Test explicit unsubscribe and its idempotence."""
        notifier = ChangeNotifier()
        received = []
        subscription = notifier.subscribe("analysis_jobs", "job-1", received.append)

        notifier.publish("analysis_jobs", ChangeEvent.UPDATE, {"id": "job-1"})
        subscription.unsubscribe()
        subscription.unsubscribe()
        notifier.publish("analysis_jobs", ChangeEvent.UPDATE, {"id": "job-1"})

        assert received == [{"id": "job-1"}]
        assert subscription.active is False
        assert notifier.subscriber_count("analysis_jobs", "job-1") == 0

    def test_subscribers_get_copies(self):
        """Test that one subscriber mutating its row does not affect another."""
        notifier = ChangeNotifier()
        seen = []

        def mutate(row):
            row["status"] = "tampered"

        notifier.subscribe("analysis_jobs", "job-1", mutate)
        notifier.subscribe("analysis_jobs", "job-1", seen.append)
        notifier.publish("analysis_jobs", ChangeEvent.UPDATE, {"id": "job-1", "status": "completed"})

        assert seen[0]["status"] == "completed"
