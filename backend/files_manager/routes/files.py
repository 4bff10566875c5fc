"""Files API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from files_manager.dependencies import get_file_service, get_token
from files_manager.schemas.file import FileCreate, FileResponse as FileResponseSchema
from files_manager.services.file_service import FileService

router = APIRouter(prefix="/files", tags=["files"])


def _page_number(page: Optional[str]) -> int:
    """Non-numeric pages fall back to the first page."""
    try:
        return int(page) if page else 0
    except ValueError:
        return 0


@router.post("", response_model=FileResponseSchema, status_code=201)
async def upload_file(
    body: FileCreate,
    token: Optional[str] = Depends(get_token),
    files: FileService = Depends(get_file_service),
):
    """Create a folder, or store a file/image and queue its thumbnails."""
    return await files.upload(token, body)


@router.get("", response_model=list[FileResponseSchema])
async def list_files(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    page: Optional[str] = Query(None),
    token: Optional[str] = Depends(get_token),
    files: FileService = Depends(get_file_service),
):
    """List the caller's files, 20 per page, optionally under one parent."""
    return await files.index(token, parent_id, _page_number(page))


@router.get("/{file_id}", response_model=FileResponseSchema)
async def get_file(
    file_id: str,
    token: Optional[str] = Depends(get_token),
    files: FileService = Depends(get_file_service),
):
    return await files.show(token, file_id)


@router.put("/{file_id}/publish", response_model=FileResponseSchema)
async def publish_file(
    file_id: str,
    token: Optional[str] = Depends(get_token),
    files: FileService = Depends(get_file_service),
):
    return await files.publish(token, file_id)


@router.put("/{file_id}/unpublish", response_model=FileResponseSchema)
async def unpublish_file(
    file_id: str,
    token: Optional[str] = Depends(get_token),
    files: FileService = Depends(get_file_service),
):
    return await files.unpublish(token, file_id)


@router.get("/{file_id}/data")
async def get_file_data(
    file_id: str,
    size: Optional[str] = Query(None),
    token: Optional[str] = Depends(get_token),
    files: FileService = Depends(get_file_service),
):
    """Stream a file's bytes, or one of its thumbnails with ``size``."""
    content = await files.fetch_content(token, file_id, size)
    return FileResponse(path=content.path, media_type=content.mime_type)
