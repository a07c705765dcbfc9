"""In-memory staging queue with simulated upload progress."""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Iterable, Optional

from swimr.config.models import StagingConfig
from swimr.models.enums import StagedFileStatus
from swimr.models.staging import FileUpload, StagedFile

logger = logging.getLogger("swimr.staging.queue")

SleepFunc = Callable[[float], Awaitable[Any]]


class StagingQueue:
    """Holds user-added files before any processing.

    Files are listed newest first. Each added file gets its own upload
    simulation task; removing the file or closing the queue abandons it.
    """

    def __init__(
        self,
        config: Optional[StagingConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize the staging queue.

        Args:
            config: Upload simulation settings.
            rng: Random source for progress steps and intervals.
            sleep: Awaitable sleep used between progress steps.
        """
        self._config = config or StagingConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._files: list[StagedFile] = []
        self._uploads: dict[str, asyncio.Task] = {}
        self._next_id = 1

    @property
    def files(self) -> list[StagedFile]:
        """Snapshot of the staged files, newest first."""
        return list(self._files)

    def add_files(self, uploads: Iterable[FileUpload]) -> list[StagedFile]:
        """Stage files and start simulating their upload.

        Must be called from within a running event loop; it never blocks.

        Args:
            uploads: Files to stage.

        Returns:
            The newly staged files.
        """
        staged = []
        for upload in uploads:
            staged.append(
                StagedFile(
                    id=f"staged-{self._next_id}",
                    file_name=upload.file_name,
                    file_size=upload.size,
                    content=upload.content,
                )
            )
            self._next_id += 1

        if not staged:
            return []

        self._files = staged + self._files

        loop = asyncio.get_running_loop()
        for sf in staged:
            self._uploads[sf.id] = loop.create_task(
                self._simulate_upload(sf.id), name=f"upload-{sf.id}"
            )

        logger.info(f"Staged {len(staged)} file(s)")
        return staged

    async def _simulate_upload(self, file_id: str) -> None:
        cfg = self._config
        progress = 0.0
        try:
            while True:
                await self._sleep(
                    self._rng.uniform(cfg.progress_interval_min, cfg.progress_interval_max)
                )
                if self.get_file(file_id) is None:
                    return

                progress += self._rng.uniform(cfg.progress_increment_min, cfg.progress_increment_max)
                if progress >= 100:
                    # Single replacement, so 100% and "pending" appear together
                    self.update_file(file_id, progress=100.0, status=StagedFileStatus.PENDING)
                    logger.debug(f"Upload of {file_id} finished")
                    return

                self.update_file(file_id, progress=min(progress, 99.0))
        finally:
            self._uploads.pop(file_id, None)

    def get_file(self, file_id: str) -> Optional[StagedFile]:
        """Look up a staged file by id."""
        for sf in self._files:
            if sf.id == file_id:
                return sf
        return None

    def remove_files(self, file_ids: Iterable[str]) -> int:
        """Remove staged files regardless of status.

        Args:
            file_ids: Ids to remove.

        Returns:
            Number of files removed.
        """
        id_set = set(file_ids)
        before = len(self._files)
        self._files = [sf for sf in self._files if sf.id not in id_set]

        for file_id in id_set:
            task = self._uploads.pop(file_id, None)
            if task is not None:
                task.cancel()

        return before - len(self._files)

    def update_file(self, file_id: str, **patch: Any) -> Optional[StagedFile]:
        """Merge-patch one staged file.

        Args:
            file_id: Id of the file to patch.
            **patch: Field values to replace.

        Returns:
            The patched file, or None if it is no longer staged.
        """
        unknown = set(patch) - set(StagedFile.model_fields)
        if unknown:
            raise ValueError(f"Unknown staged file field(s): {', '.join(sorted(unknown))}")

        for index, sf in enumerate(self._files):
            if sf.id == file_id:
                updated = sf.model_copy(update=patch)
                self._files[index] = updated
                return updated
        return None

    def get_pending_files(self) -> list[StagedFile]:
        """Files ready for analysis, in list order."""
        return [sf for sf in self._files if sf.status == StagedFileStatus.PENDING]

    @property
    def uploading_count(self) -> int:
        return len(self._uploads)

    async def wait_for_uploads(self) -> None:
        """Wait until every running upload simulation has finished."""
        while self._uploads:
            await asyncio.gather(*list(self._uploads.values()), return_exceptions=True)

    async def close(self) -> None:
        """Abandon all upload simulations."""
        tasks = list(self._uploads.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._uploads.clear()
