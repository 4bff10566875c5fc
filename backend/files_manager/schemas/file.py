"""File request/response schemas."""
import uuid
from typing import Optional, Union
from pydantic import field_validator
from files_manager.schemas.base import CamelModel, CamelORMModel

# Wire value of the root parent
ROOT_PARENT_ID = 0


class FileCreate(CamelModel):
    """Upload body. Required fields are checked by the service so each
    missing field gets its own error message."""
    name: Optional[str] = None
    type: Optional[str] = None
    parent_id: Union[int, str, None] = ROOT_PARENT_ID  # null means root
    is_public: Optional[bool] = False
    data: Optional[str] = None  # base64


class FileResponse(CamelORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    type: str
    is_public: bool
    parent_id: Union[uuid.UUID, int] = ROOT_PARENT_ID

    @field_validator("parent_id", mode="before")
    @classmethod
    def root_to_zero(cls, v):
        return ROOT_PARENT_ID if v is None else v
