"""FileRecord model - folder/file/image metadata (bytes live in the blob store)."""
import uuid
from sqlalchemy import Boolean, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from files_manager.models.base import Base, CreatedAtMixin

FOLDER = "folder"
FILE = "file"
IMAGE = "image"
FILE_TYPES = (FOLDER, FILE, IMAGE)


class FileRecord(Base, CreatedAtMixin):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # NULL means the record sits at the root of the owner's tree
    parent_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    # Blob store reference; NULL iff type is folder
    local_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        Index("idx_files_user_parent", "user_id", "parent_id"),
    )

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER
