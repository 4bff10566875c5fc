"""Local filesystem blob store.

Bytes are stored under a content root with a generated name. Thumbnail
variants live next to the original as ``<name>_<width>``.
"""
import logging
import uuid
from pathlib import Path

import aiofiles

from files_manager.services.errors import NotFound, StorageError

logger = logging.getLogger(__name__)


class FileStorageService:
    """Handles file read/write under a single root directory."""

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)

    async def _write(self, file_path: Path, file_bytes: bytes) -> None:
        try:
            # Created lazily so a fresh content root needs no setup step
            self.base_path.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(file_bytes)
        except OSError as e:
            logger.exception(f"Failed to write {file_path}")
            raise StorageError() from e

    async def write(self, file_bytes: bytes) -> str:
        """Save file bytes under a fresh name. Returns the content ref."""
        file_path = self.base_path / str(uuid.uuid4())
        await self._write(file_path, file_bytes)
        return str(file_path)

    @staticmethod
    def variant_ref(content_ref: str, width: int) -> str:
        return f"{content_ref}_{width}"

    async def write_variant(self, content_ref: str, width: int, file_bytes: bytes) -> str:
        """Save a thumbnail next to the original. Returns the variant ref."""
        ref = self.variant_ref(content_ref, width)
        await self._write(Path(ref), file_bytes)
        return ref

    def path(self, content_ref: str) -> Path:
        return Path(content_ref).resolve()

    def exists(self, content_ref: str) -> bool:
        return self.path(content_ref).is_file()

    async def read(self, content_ref: str) -> bytes:
        """Read file bytes from a content ref."""
        try:
            async with aiofiles.open(content_ref, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise NotFound() from e
        except OSError as e:
            logger.exception(f"Failed to read {content_ref}")
            raise StorageError() from e
