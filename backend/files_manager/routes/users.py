"""User and session routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response

from files_manager.dependencies import get_auth_service, get_token
from files_manager.schemas.user import ConnectResponse, UserCreate, UserResponse
from files_manager.services.auth_service import AuthService

router = APIRouter(tags=["users"])


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    body: UserCreate,
    auth: AuthService = Depends(get_auth_service),
):
    """Register a new user."""
    return await auth.register(body.email, body.password)


@router.get("/users/me", response_model=UserResponse)
async def get_me(
    token: Optional[str] = Depends(get_token),
    auth: AuthService = Depends(get_auth_service),
):
    return await auth.current_user(token)


@router.get("/connect", response_model=ConnectResponse)
async def connect(
    authorization: Optional[str] = Header(None),
    auth: AuthService = Depends(get_auth_service),
):
    """Exchange Basic credentials for a session token."""
    return {"token": await auth.connect(authorization)}


@router.get("/disconnect", status_code=204)
async def disconnect(
    token: Optional[str] = Depends(get_token),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.disconnect(token)
    return Response(status_code=204)
