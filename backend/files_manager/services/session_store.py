"""Redis-backed session tokens.

A token maps to a user id under ``auth_<token>`` with an absolute TTL.
Lookups never refresh the TTL.
"""
import logging
import uuid
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from files_manager.services.errors import StorageError

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 24 * 3600


class SessionStore:
    """Issue, resolve and revoke session tokens."""

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        key_prefix: str = "auth_",
    ):
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = SESSION_TTL_SECONDS) -> "SessionStore":
        client = redis.from_url(redis_url, decode_responses=True)
        return cls(client, ttl_seconds=ttl_seconds)

    def _make_key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"

    async def issue(self, user_id) -> str:
        """Create a new token for ``user_id`` and return it."""
        token = str(uuid.uuid4())
        try:
            await self._redis.set(self._make_key(token), str(user_id), ex=self.ttl_seconds)
        except RedisError as e:
            logger.error(f"Failed to store session for user {user_id}: {e}")
            raise StorageError() from e
        return token

    async def resolve(self, token: Optional[str]) -> Optional[str]:
        """Return the user id owning ``token``, or None.

        Expired, unknown and unreadable tokens all look the same here.
        """
        if not token:
            return None
        try:
            user_id = await self._redis.get(self._make_key(token))
        except RedisError as e:
            logger.warning(f"Session lookup failed: {e}")
            return None
        # Clients built without decode_responses hand back bytes
        if isinstance(user_id, bytes):
            return user_id.decode("utf-8", errors="replace")
        return user_id

    async def revoke(self, token: str) -> None:
        """Delete the token. Revoking an unknown token is a no-op."""
        try:
            await self._redis.delete(self._make_key(token))
        except RedisError as e:
            logger.error(f"Failed to revoke session: {e}")
            raise StorageError() from e

    async def is_alive(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._redis.aclose()
