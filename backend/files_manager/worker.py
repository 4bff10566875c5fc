"""Standalone thumbnail worker process.

Usage:
    python -m files_manager.worker

Runs the same consumer loop the API starts in-process. Several of these
can run side by side; each claims different jobs.
"""
import asyncio
import logging

from files_manager.config import Settings, get_settings
from files_manager.database import create_engine, create_session_factory
from files_manager.main import configure_logging
from files_manager.models import Base
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import ThumbnailQueue
from files_manager.services.job_worker import ThumbnailWorker

logger = logging.getLogger(__name__)


async def run_worker(settings: Settings) -> None:
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    queue = ThumbnailQueue(session_factory)
    worker = ThumbnailWorker(queue, session_factory, FileStorageService(settings.FOLDER_PATH))
    await queue.recover_stale_jobs(settings.STALE_JOB_MINUTES)
    try:
        await asyncio.gather(*(
            worker.run(settings.JOB_POLL_INTERVAL)
            for _ in range(max(1, settings.WORKER_CONCURRENCY))
        ))
    finally:
        await engine.dispose()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting {settings.WORKER_CONCURRENCY} thumbnail consumer(s)")
    asyncio.run(run_worker(settings))


if __name__ == "__main__":
    main()
