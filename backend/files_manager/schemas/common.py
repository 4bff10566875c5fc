"""Shared Pydantic schemas."""
from pydantic import BaseModel


class StatusResponse(BaseModel):
    redis: bool
    db: bool


class StatsResponse(BaseModel):
    users: int = 0
    files: int = 0
