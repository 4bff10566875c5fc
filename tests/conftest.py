"""Shared fixtures: a throwaway SQLite database, fake Redis and a content root."""
import io

import httpx
import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from PIL import Image as PILImage

from files_manager.config import Settings
from files_manager.database import create_engine, create_session_factory
from files_manager.main import create_app
from files_manager.models import Base
from files_manager.services.auth_service import AuthService
from files_manager.services.file_catalog import FileCatalog
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import ThumbnailQueue
from files_manager.services.job_worker import ThumbnailWorker
from files_manager.services.session_store import SessionStore


def make_png(width: int = 800, height: int = 600) -> bytes:
    """Create a solid-colour PNG."""
    out = io.BytesIO()
    PILImage.new("RGB", (width, height), (200, 30, 30)).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        FOLDER_PATH=str(tmp_path / "files"),
        WORKER_ENABLED=False,
        JOB_POLL_INTERVAL=0.05,
        BCRYPT_ROUNDS=4,
    )


@pytest_asyncio.fixture
async def session_factory(settings):
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis_client():
    # A private server per test so no state leaks between tests
    return FakeAsyncRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def sessions(redis_client) -> SessionStore:
    return SessionStore(redis_client)


@pytest.fixture
def storage(settings) -> FileStorageService:
    return FileStorageService(settings.FOLDER_PATH)


@pytest.fixture
def queue(session_factory) -> ThumbnailQueue:
    return ThumbnailQueue(session_factory)


@pytest.fixture
def worker(queue, session_factory, storage) -> ThumbnailWorker:
    return ThumbnailWorker(queue, session_factory, storage)


@pytest.fixture
def auth(db, sessions) -> AuthService:
    return AuthService(db, sessions, bcrypt_rounds=4)


@pytest.fixture
def catalog(db, storage, queue) -> FileCatalog:
    return FileCatalog(db, storage, queue)


@pytest_asyncio.fixture
async def owner(auth):
    user = await auth.register("bob@example.com", "toto1234!")
    return user.id


@pytest_asyncio.fixture
async def other_owner(auth):
    user = await auth.register("alice@example.com", "secret")
    return user.id


@pytest_asyncio.fixture
async def app(settings, redis_client):
    app = create_app(settings, redis_client=redis_client)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def png() -> bytes:
    return make_png()
