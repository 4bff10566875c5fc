"""Health and statistics routes."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from files_manager.database import get_db
from files_manager.dependencies import get_auth_service, get_file_catalog
from files_manager.schemas.common import StatsResponse, StatusResponse
from files_manager.services.auth_service import AuthService
from files_manager.services.file_catalog import FileCatalog

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request, db: AsyncSession = Depends(get_db)):
    """Report whether Redis and the database are reachable."""
    try:
        await db.execute(text("SELECT 1"))
        db_alive = True
    except SQLAlchemyError:
        db_alive = False
    return {"redis": await request.app.state.sessions.is_alive(), "db": db_alive}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    auth: AuthService = Depends(get_auth_service),
    catalog: FileCatalog = Depends(get_file_catalog),
):
    """Count users and file records."""
    return {"users": await auth.count(), "files": await catalog.count()}
