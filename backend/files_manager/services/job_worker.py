"""Background thumbnail worker.

Claims jobs from the ThumbnailQueue one at a time and writes a resized
variant of the original content for every width in THUMBNAIL_WIDTHS.
Runs as an asyncio task within the API process, or standalone via
``python -m files_manager.worker``.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.models.file_record import FileRecord
from files_manager.services.errors import FilesManagerError, JobFailure
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import JobOutcome, ThumbnailQueue, ThumbnailTask
from files_manager.services.thumbnails import THUMBNAIL_WIDTHS, make_thumbnail

logger = logging.getLogger(__name__)


def safe_error_message(e: BaseException, fallback: str = "Thumbnail generation failed") -> str:
    """Extract a meaningful error message from an exception.

    Some exceptions produce an empty str(e). This helper falls back to the
    exception class name.
    """
    msg = str(e).strip()
    if not msg:
        msg = f"{type(e).__name__}: {fallback}"
    return msg


class ThumbnailWorker:
    def __init__(
        self,
        queue: ThumbnailQueue,
        session_factory: async_sessionmaker[AsyncSession],
        storage: FileStorageService,
        widths: tuple[int, ...] = THUMBNAIL_WIDTHS,
    ):
        self.queue = queue
        self._session_factory = session_factory
        self.storage = storage
        self.widths = widths

    async def _load_file(self, task: ThumbnailTask) -> Optional[FileRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileRecord).where(
                    FileRecord.id == task.file_id,
                    FileRecord.user_id == task.user_id,
                )
            )
            return result.scalar_one_or_none()

    async def _write_width(self, content_ref: str, data: bytes, width: int) -> str:
        thumbnail = await asyncio.to_thread(make_thumbnail, data, width)
        return await self.storage.write_variant(content_ref, width, thumbnail)

    async def process(self, task: ThumbnailTask) -> JobOutcome:
        """Generate every variant for one job.

        All widths run concurrently. If any of them fails the job fails,
        and variants already written by the others are left in place.
        """
        file_rec = await self._load_file(task)
        if file_rec is None:
            return JobOutcome.failed(task.job_id, "File not found")
        if not file_rec.local_path:
            return JobOutcome.failed(task.job_id, "File has no content")

        try:
            data = await self.storage.read(file_rec.local_path)
        except FilesManagerError as e:
            return JobOutcome.failed(task.job_id, f"Cannot read original: {e.message}")

        results = await asyncio.gather(
            *(self._write_width(file_rec.local_path, data, w) for w in self.widths),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            first = errors[0]
            if not isinstance(first, (JobFailure, FilesManagerError)):
                logger.error(f"Job {task.job_id} hit unexpected error", exc_info=first)
            return JobOutcome.failed(task.job_id, safe_error_message(first))
        return JobOutcome.completed(task.job_id)

    async def run_once(self) -> Optional[JobOutcome]:
        """Claim and process a single job. Returns None when the queue is empty."""
        task = await self.queue.claim_next()
        if task is None:
            return None

        logger.info(f"Processing job {task.job_id} (file={task.file_id})")
        try:
            outcome = await self.process(task)
        except Exception as e:
            logger.exception(f"Job {task.job_id} crashed")
            outcome = JobOutcome.failed(task.job_id, safe_error_message(e))
        await self.queue.finish(outcome)
        if outcome.ok:
            logger.info(f"Job {task.job_id} completed")
        else:
            logger.error(f"Job {task.job_id} failed: {outcome.error}")
        return outcome

    async def drain(self) -> list[JobOutcome]:
        """Process queued jobs until none are left."""
        outcomes = []
        while (outcome := await self.run_once()) is not None:
            outcomes.append(outcome)
        return outcomes

    async def run(self, poll_interval: float = 5.0) -> None:
        """Main worker loop. Waits for new jobs, polling every ``poll_interval``."""
        logger.info("Thumbnail worker started")
        while True:
            try:
                await self.drain()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Worker loop error: {e}")

            await self.queue.wait(poll_interval)
