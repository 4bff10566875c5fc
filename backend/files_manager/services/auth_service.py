"""User registration and session credential exchange."""
import base64
import binascii
import logging
import uuid
from typing import Optional

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from files_manager.models.user import User
from files_manager.services.errors import AuthError, ValidationError
from files_manager.services.session_store import SessionStore

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    hashed = bcrypt.hashpw(
        password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
        bcrypt.gensalt(rounds=rounds),
    )
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
            hashed.encode("utf-8"),
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def parse_basic_auth(header: Optional[str]) -> Optional[tuple[str, str]]:
    """Decode ``Basic base64(email:password)``. Returns None if malformed."""
    if not header or not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[len("Basic "):].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    email, sep, password = decoded.partition(":")
    if not sep or not email or not password:
        return None
    return email, password


class AuthService:
    def __init__(
        self,
        db: AsyncSession,
        sessions: SessionStore,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ):
        self.db = db
        self.sessions = sessions
        self.bcrypt_rounds = bcrypt_rounds

    async def register(self, email: Optional[str], password: Optional[str]) -> User:
        if not email:
            raise ValidationError("Missing email")
        if not password:
            raise ValidationError("Missing password")

        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ValidationError("Already exist")

        user = User(email=email, password=hash_password(password, self.bcrypt_rounds))
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Registered user {user.id}")
        return user

    async def connect(self, authorization: Optional[str]) -> str:
        """Exchange Basic credentials for a session token."""
        credentials = parse_basic_auth(authorization)
        if credentials is None:
            raise AuthError()
        email, password = credentials

        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password):
            raise AuthError()
        return await self.sessions.issue(user.id)

    async def authenticate(self, token: Optional[str]) -> uuid.UUID:
        """Return the id of the user owning ``token`` or raise AuthError."""
        user_id = await self.sessions.resolve(token)
        if user_id is None:
            raise AuthError()
        try:
            return uuid.UUID(user_id)
        except (TypeError, ValueError):
            raise AuthError()

    async def disconnect(self, token: Optional[str]) -> None:
        await self.authenticate(token)
        await self.sessions.revoke(token)

    async def current_user(self, token: Optional[str]) -> User:
        user = await self.db.get(User, await self.authenticate(token))
        if user is None:
            raise AuthError()
        return user

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(User))
        return result.scalar_one()
