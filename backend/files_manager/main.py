"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from files_manager.config import Settings, get_settings
from files_manager.database import create_engine, create_session_factory
from files_manager.models import Base
from files_manager.services.errors import FilesManagerError, StorageError
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import ThumbnailQueue
from files_manager.services.job_worker import ThumbnailWorker
from files_manager.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Messages for malformed body fields, matching the service's own checks
FIELD_ERRORS = {
    "name": "Missing name",
    "type": "Missing type",
    "data": "Invalid data",
    "parentId": "Parent not found",
    "email": "Missing email",
    "password": "Missing password",
}


def request_error_message(exc: RequestValidationError) -> str:
    """Reduce FastAPI's validation detail to a single error message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    # loc is ("body", <field>, ...); union members add trailing parts
    loc = errors[0].get("loc", ())
    if len(loc) < 2 or not isinstance(loc[1], str):
        return "Invalid request"
    field = loc[1]
    return FIELD_ERRORS.get(field, f"Invalid {field}")


def create_app(settings: Optional[Settings] = None, redis_client: Optional[redis.Redis] = None) -> FastAPI:
    """Build the API. Store handles are created in the lifespan and kept on app.state."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables and store clients on startup, start background workers."""
        engine = create_engine(settings)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        session_factory = create_session_factory(engine)
        if redis_client is not None:
            sessions = SessionStore(redis_client, ttl_seconds=settings.SESSION_TTL_SECONDS)
        else:
            sessions = SessionStore.from_url(settings.REDIS_URL, ttl_seconds=settings.SESSION_TTL_SECONDS)
        storage = FileStorageService(settings.FOLDER_PATH)
        queue = ThumbnailQueue(session_factory)

        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.sessions = sessions
        app.state.storage = storage
        app.state.queue = queue

        worker_tasks = []
        if settings.WORKER_ENABLED:
            # Recover any jobs stuck in "running" from a previous crash
            await queue.recover_stale_jobs(settings.STALE_JOB_MINUTES)
            worker = ThumbnailWorker(queue, session_factory, storage)
            for _ in range(max(1, settings.WORKER_CONCURRENCY)):
                worker_tasks.append(asyncio.create_task(worker.run(settings.JOB_POLL_INTERVAL)))

        yield

        # Cleanup
        for task in worker_tasks:
            task.cancel()
        await asyncio.gather(*worker_tasks, return_exceptions=True)
        await sessions.close()
        await engine.dispose()

    app = FastAPI(
        title="Files Manager API",
        version="1.0.0",
        description="Store, share and thumbnail user files.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FilesManagerError)
    async def files_manager_error_handler(request: Request, exc: FilesManagerError):
        if isinstance(exc, StorageError):
            logger.error(f"{request.method} {request.url.path} failed: {exc.__cause__ or exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": request_error_message(exc)})

    # Register routers
    from files_manager.routes.status import router as status_router
    from files_manager.routes.users import router as users_router
    from files_manager.routes.files import router as files_router
    app.include_router(status_router)
    app.include_router(users_router)
    app.include_router(files_router)

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.API_PORT)


if __name__ == "__main__":
    main()
