"""File operations behind a session token.

Authenticates every call, then delegates to the FileCatalog. Holds no
state of its own.
"""
import base64
import binascii
from typing import Optional

from files_manager.models.file_record import FILE_TYPES, FOLDER, FileRecord
from files_manager.schemas.file import FileCreate
from files_manager.services.auth_service import AuthService
from files_manager.services.errors import AuthError, MissingContent, ValidationError
from files_manager.services.file_catalog import ANY_PARENT, FileCatalog, FileContent


class FileService:
    def __init__(self, auth: AuthService, catalog: FileCatalog):
        self.auth = auth
        self.catalog = catalog

    async def upload(self, token: Optional[str], body: FileCreate) -> FileRecord:
        owner = await self.auth.authenticate(token)

        if not body.name:
            raise ValidationError("Missing name")
        if body.type not in FILE_TYPES:
            raise ValidationError("Missing type")
        if body.type == FOLDER:
            return await self.catalog.create_folder(
                owner, body.name, body.parent_id, is_public=bool(body.is_public)
            )

        if not body.data:
            raise MissingContent()
        try:
            data = base64.b64decode(body.data)
        except (binascii.Error, ValueError):
            raise ValidationError("Invalid data")
        return await self.catalog.create_leaf(
            owner,
            body.name,
            body.type,
            data,
            parent_id=body.parent_id,
            is_public=bool(body.is_public),
        )

    async def show(self, token: Optional[str], file_id: str) -> FileRecord:
        owner = await self.auth.authenticate(token)
        return await self.catalog.get(owner, file_id)

    async def index(
        self,
        token: Optional[str],
        parent_id: Optional[str] = None,
        page: int = 0,
    ) -> list[FileRecord]:
        """List the caller's files. A missing ``parent_id`` lists everything."""
        owner = await self.auth.authenticate(token)
        return await self.catalog.list(
            owner,
            ANY_PARENT if parent_id is None else parent_id,
            page,
        )

    async def publish(self, token: Optional[str], file_id: str) -> FileRecord:
        owner = await self.auth.authenticate(token)
        return await self.catalog.set_visibility(owner, file_id, True)

    async def unpublish(self, token: Optional[str], file_id: str) -> FileRecord:
        owner = await self.auth.authenticate(token)
        return await self.catalog.set_visibility(owner, file_id, False)

    async def fetch_content(
        self,
        token: Optional[str],
        file_id: str,
        size: Optional[str] = None,
    ) -> FileContent:
        """Content is readable anonymously when public, so a bad token only
        means there is no requester."""
        requester = None
        if token:
            try:
                requester = await self.auth.authenticate(token)
            except AuthError:
                requester = None
        return await self.catalog.read_content(requester, file_id, size)
