"""SQLite key-value store holding the batch run snapshot across restarts."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite
from pydantic import ValidationError

from swimr.errors import StoreError
from swimr.models.batch import BatchRun

logger = logging.getLogger("swimr.orchestration.state")

RUN_STATE_KEY = "swimr_batch_run"


class RunStateStore:
    """Durable get/set/remove store scoped to this machine.

    The active batch run is written here in full after every transition so a
    later process can pick it up again.
    """

    def __init__(self, db_path: Path | str):
        """Initialize the state store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the database schema."""
        if self._initialized:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.commit()

        self._initialized = True
        logger.debug(f"Run state database initialized at {self._db_path}")

    async def get(self, key: str) -> Optional[str]:
        """Get a stored value.

        Args:
            key: Storage key.

        Returns:
            The stored string, or None if absent.
        """
        await self.initialize()

        try:
            async with aiosqlite.connect(self._db_path) as db:
                async with db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Reading {key} failed: {e}") from e

        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        await self.initialize()

        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    """
                    INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    (key, value, datetime.now(timezone.utc).isoformat()),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Writing {key} failed: {e}") from e

    async def remove(self, key: str) -> None:
        """Remove a value if present."""
        await self.initialize()

        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Removing {key} failed: {e}") from e

    async def save_run(self, run: Optional[BatchRun]) -> None:
        """Overwrite the persisted run snapshot.

        Args:
            run: Run to persist, or None to clear the snapshot.
        """
        if run is None:
            await self.remove(RUN_STATE_KEY)
            return
        await self.set(RUN_STATE_KEY, run.model_dump_json())

    async def load_run(self) -> Optional[BatchRun]:
        """Load the persisted run snapshot.

        Returns:
            The run, or None if nothing usable is stored.
        """
        raw = await self.get(RUN_STATE_KEY)
        if raw is None:
            return None

        try:
            data: Any = json.loads(raw)
            return BatchRun.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable batch run snapshot: {e}")
            return None
