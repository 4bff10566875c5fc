"""User and session request/response schemas."""
import uuid
from typing import Optional
from pydantic import BaseModel
from files_manager.schemas.base import CamelModel, CamelORMModel


class UserCreate(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(CamelORMModel):
    id: uuid.UUID
    email: str


class ConnectResponse(BaseModel):
    token: str
