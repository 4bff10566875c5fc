"""Persistent thumbnail job queue backed by the ``jobs`` table.

Jobs move ``queued`` -> ``running`` -> ``completed`` | ``failed`` and are
never retried. Claiming is a conditional update, so any number of
consumers (in this process or others) each get disjoint jobs.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.models.job import COMPLETED, FAILED, QUEUED, RUNNING, ThumbnailJob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThumbnailTask:
    """A claimed unit of work handed to the worker."""
    job_id: uuid.UUID
    user_id: uuid.UUID
    file_id: uuid.UUID


@dataclass(frozen=True)
class JobOutcome:
    job_id: uuid.UUID
    status: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == COMPLETED

    @classmethod
    def completed(cls, job_id: uuid.UUID) -> "JobOutcome":
        return cls(job_id=job_id, status=COMPLETED)

    @classmethod
    def failed(cls, job_id: uuid.UUID, error: str) -> "JobOutcome":
        return cls(job_id=job_id, status=FAILED, error=error)


class ThumbnailQueue:
    """Producer and consumer side of the thumbnail job table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._wakeup = asyncio.Event()

    async def enqueue(self, user_id: uuid.UUID, file_id: uuid.UUID) -> uuid.UUID:
        """Add a job and wake any local consumer. Returns the job id."""
        async with self._session_factory() as db:
            job = ThumbnailJob(user_id=user_id, file_id=file_id, status=QUEUED)
            db.add(job)
            await db.commit()
            job_id = job.id
        logger.info(f"Enqueued thumbnail job {job_id} for file {file_id}")
        self._wakeup.set()
        return job_id

    async def claim_next(self) -> Optional[ThumbnailTask]:
        """Claim the oldest queued job, or return None if there is none."""
        async with self._session_factory() as db:
            while True:
                result = await db.execute(
                    select(ThumbnailJob)
                    .where(ThumbnailJob.status == QUEUED)
                    .order_by(ThumbnailJob.created_at)
                    .limit(1)
                )
                job = result.scalar_one_or_none()
                if job is None:
                    return None

                claimed = await db.execute(
                    update(ThumbnailJob)
                    .where(ThumbnailJob.id == job.id, ThumbnailJob.status == QUEUED)
                    .values(status=RUNNING, started_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
                if claimed.rowcount == 1:
                    return ThumbnailTask(job_id=job.id, user_id=job.user_id, file_id=job.file_id)
                # Another consumer won the race; look again
                db.expunge_all()

    async def finish(self, outcome: JobOutcome) -> None:
        """Persist a terminal outcome."""
        async with self._session_factory() as db:
            await db.execute(
                update(ThumbnailJob)
                .where(ThumbnailJob.id == outcome.job_id)
                .values(
                    status=outcome.status,
                    error_message=outcome.error[:2000] if outcome.error else None,
                    completed_at=datetime.now(timezone.utc),
                )
            )
            await db.commit()

    async def get(self, job_id: uuid.UUID) -> Optional[ThumbnailJob]:
        async with self._session_factory() as db:
            return await db.get(ThumbnailJob, job_id)

    async def wait(self, timeout: float) -> None:
        """Sleep until something is enqueued locally or ``timeout`` elapses."""
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    async def recover_stale_jobs(self, stale_minutes: int = 15) -> int:
        """Mark jobs stuck in 'running' for longer than ``stale_minutes`` as failed.

        Call on startup to recover from process crashes that left jobs stranded.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=stale_minutes)
        async with self._session_factory() as db:
            result = await db.execute(
                select(ThumbnailJob).where(
                    and_(
                        ThumbnailJob.status == RUNNING,
                        ThumbnailJob.started_at < cutoff,
                    )
                )
            )
            stale_jobs = result.scalars().all()
            for job in stale_jobs:
                job.status = FAILED
                job.error_message = f"Recovered on startup: job was running for >{stale_minutes} minutes"
                job.completed_at = datetime.now(timezone.utc)
                logger.warning(f"Recovered stale job {job.id} (started at {job.started_at})")
            if stale_jobs:
                await db.commit()
                logger.info(f"Recovered {len(stale_jobs)} stale job(s)")
            return len(stale_jobs)
