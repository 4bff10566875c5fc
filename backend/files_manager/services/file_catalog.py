"""File and folder metadata: hierarchy rules, ownership scoping, visibility.

Every query is scoped to the owner. A record owned by someone else is
reported exactly like a record that does not exist.
"""
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from files_manager.models.file_record import FILE, FOLDER, IMAGE, FileRecord
from files_manager.services.errors import (
    InvalidRequest,
    InvalidSize,
    MissingContent,
    NotAContent,
    NotFound,
    ParentNotAFolder,
    ParentNotFound,
    ValidationError,
)
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import ThumbnailQueue
from files_manager.services.thumbnails import THUMBNAIL_WIDTHS

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
LEAF_TYPES = (FILE, IMAGE)
# Largest OFFSET the database drivers accept (signed 64-bit)
MAX_OFFSET = 2**63 - 1


class _AnyParent:
    def __repr__(self) -> str:
        return "ANY_PARENT"


# list() filter value meaning "do not filter on parent"
ANY_PARENT = _AnyParent()


def parse_id(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    """Parse a record id, returning None for anything malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def is_root(parent_id) -> bool:
    """The root sentinel is 0 on the wire; None and "0" mean the same."""
    return parent_id is None or str(parent_id) == "0"


@dataclass(frozen=True)
class FileContent:
    """Where to stream a record's bytes from, and how to label them."""
    path: Path
    mime_type: str
    name: str


class FileCatalog:
    def __init__(
        self,
        db: AsyncSession,
        storage: FileStorageService,
        queue: ThumbnailQueue,
    ):
        self.db = db
        self.storage = storage
        self.queue = queue

    async def _find(self, file_id, owner: Optional[uuid.UUID] = None) -> Optional[FileRecord]:
        record_id = parse_id(file_id)
        if record_id is None:
            return None
        query = select(FileRecord).where(FileRecord.id == record_id)
        if owner is not None:
            query = query.where(FileRecord.user_id == owner)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _resolve_parent(self, owner: uuid.UUID, parent_id) -> Optional[uuid.UUID]:
        """Return the parent's id (None for root) or raise ParentConflict."""
        if is_root(parent_id):
            return None
        parent = await self._find(parent_id, owner)
        if parent is None:
            raise ParentNotFound()
        if not parent.is_folder:
            raise ParentNotAFolder()
        return parent.id

    async def _insert(self, record: FileRecord) -> FileRecord:
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def create_folder(
        self,
        owner: uuid.UUID,
        name: Optional[str],
        parent_id=None,
        is_public: bool = False,
    ) -> FileRecord:
        if not name:
            raise ValidationError("Missing name")
        parent = await self._resolve_parent(owner, parent_id)
        record = await self._insert(FileRecord(
            user_id=owner,
            name=name,
            type=FOLDER,
            is_public=is_public,
            parent_id=parent,
        ))
        logger.info(f"Created folder {record.id} for user {owner}")
        return record

    async def create_leaf(
        self,
        owner: uuid.UUID,
        name: Optional[str],
        file_type: str,
        data: Optional[bytes],
        parent_id=None,
        is_public: bool = False,
    ) -> FileRecord:
        """Store a file or image and queue its thumbnail job.

        A job is queued for every leaf, plain files included; the worker
        fails those when it cannot decode them.
        """
        if not name:
            raise ValidationError("Missing name")
        if file_type not in LEAF_TYPES:
            raise ValidationError("Missing type")
        if not data:
            raise MissingContent()
        parent = await self._resolve_parent(owner, parent_id)

        local_path = await self.storage.write(data)
        record = await self._insert(FileRecord(
            user_id=owner,
            name=name,
            type=file_type,
            is_public=is_public,
            parent_id=parent,
            local_path=local_path,
        ))
        logger.info(f"Stored {file_type} {record.id} for user {owner} at {local_path}")

        await self.queue.enqueue(owner, record.id)
        return record

    async def get(self, owner: uuid.UUID, file_id) -> FileRecord:
        record = await self._find(file_id, owner)
        if record is None:
            raise NotFound()
        return record

    async def list(self, owner: uuid.UUID, parent_id=ANY_PARENT, page: int = 0) -> list[FileRecord]:
        """One page of the owner's records in insertion order.

        ``parent_id`` left as ANY_PARENT lists everything; root lists
        top-level records only.
        """
        if page < 0 or page * PAGE_SIZE > MAX_OFFSET:
            return []
        query = select(FileRecord).where(FileRecord.user_id == owner)
        if parent_id is not ANY_PARENT:
            if is_root(parent_id):
                query = query.where(FileRecord.parent_id.is_(None))
            else:
                parent = parse_id(parent_id)
                if parent is None:
                    return []
                query = query.where(FileRecord.parent_id == parent)

        result = await self.db.execute(
            query
            .order_by(FileRecord.created_at, FileRecord.id)
            .offset(page * PAGE_SIZE)
            .limit(PAGE_SIZE)
        )
        return list(result.scalars().all())

    async def set_visibility(self, owner: uuid.UUID, file_id, is_public: bool) -> FileRecord:
        """Single-statement update scoped to (id, owner); last write wins."""
        record_id = parse_id(file_id)
        if record_id is None:
            raise NotFound()
        result = await self.db.execute(
            update(FileRecord)
            .where(FileRecord.id == record_id, FileRecord.user_id == owner)
            .values(is_public=is_public)
            .returning(FileRecord)
        )
        record = result.scalar_one_or_none()
        await self.db.commit()
        if record is None:
            raise NotFound()
        return record

    async def read_content(
        self,
        requester: Optional[uuid.UUID],
        file_id,
        size: Union[str, int, None] = None,
    ) -> FileContent:
        """Resolve the bytes to serve for a record, honouring visibility.

        Private records look missing to everyone but their owner.
        """
        record = await self._find(file_id)
        if record is None:
            raise NotFound()
        if not record.is_public and requester != record.user_id:
            raise NotFound()
        if record.is_folder:
            raise NotAContent()
        if not record.local_path:
            raise NotFound()

        content_ref = record.local_path
        if size is not None and size != "":
            width = _parse_width(size)
            if record.type != IMAGE:
                raise InvalidRequest()
            content_ref = self.storage.variant_ref(record.local_path, width)

        # Variants show up some time after upload
        if not self.storage.exists(content_ref):
            raise NotFound()

        mime_type, _ = mimetypes.guess_type(record.name)
        return FileContent(
            path=self.storage.path(content_ref),
            mime_type=mime_type or "application/octet-stream",
            name=record.name,
        )

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(FileRecord))
        return result.scalar_one()


def _parse_width(size: Union[str, int]) -> int:
    try:
        width = int(size)
    except (TypeError, ValueError):
        raise InvalidSize()
    if width not in THUMBNAIL_WIDTHS:
        raise InvalidSize()
    return width
