"""FastAPI dependencies wiring request-scoped services to app-wide handles."""
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from files_manager.database import get_db
from files_manager.services.auth_service import AuthService
from files_manager.services.file_catalog import FileCatalog
from files_manager.services.file_service import FileService


async def get_token(x_token: Optional[str] = Header(None, alias="X-Token")) -> Optional[str]:
    return x_token


def get_auth_service(request: Request, db: AsyncSession = Depends(get_db)) -> AuthService:
    state = request.app.state
    return AuthService(db, state.sessions, bcrypt_rounds=state.settings.BCRYPT_ROUNDS)


def get_file_catalog(request: Request, db: AsyncSession = Depends(get_db)) -> FileCatalog:
    state = request.app.state
    return FileCatalog(db, state.storage, state.queue)


def get_file_service(
    auth: AuthService = Depends(get_auth_service),
    catalog: FileCatalog = Depends(get_file_catalog),
) -> FileService:
    return FileService(auth, catalog)
