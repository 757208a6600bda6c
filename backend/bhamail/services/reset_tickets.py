"""Password-reset tickets in Redis.

Key format: "password_reset:{token}", value: user id.
TTL: 1 hour by default, configurable via ``PASSWORD_RESET_TTL_SECONDS``.

Without ``REDIS_URL`` tickets live in an in-process dict, which is only
suitable for a single development worker and for tests.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta

from redis.asyncio import Redis
from redis.exceptions import RedisError

from bhamail.core.config import settings
from bhamail.core.exceptions import StorageUnavailableError
from bhamail.core.logging import get_logger

logger = get_logger(__name__)

RESET_TICKET_PREFIX = "password_reset"

DEFAULT_TICKET_TTL = 3600


class ResetTicketStore:
    """Issues, resolves and revokes single-use password-reset tickets.

    Unlike a cache, a ticket store cannot degrade silently: a Redis failure
    raises ``StorageUnavailableError``.
    """

    def __init__(self, redis_url: str | None = None, ttl: int = DEFAULT_TICKET_TTL):
        self.ttl = ttl
        self._redis: Redis | None = None
        self._in_memory: dict[str, tuple[str, datetime]] = {}

        if redis_url:
            self._redis = Redis.from_url(redis_url, decode_responses=True)
            logger.info("Reset ticket store initialized with Redis")
        else:
            logger.info("Using in-memory reset ticket store")

    @property
    def uses_redis(self) -> bool:
        return self._redis is not None

    @staticmethod
    def _make_key(token: str) -> str:
        return f"{RESET_TICKET_PREFIX}:{token}"

    def _storage_error(self, operation: str, error: RedisError) -> StorageUnavailableError:
        logger.error(
            "Reset ticket store unavailable",
            extra={
                "context": {
                    "action": f"reset_ticket_{operation}",
                    "status": "failed",
                    "error_type": type(error).__name__,
                }
            },
        )
        return StorageUnavailableError()

    def _purge_expired(self, now: datetime) -> int:
        """Drop in-memory tickets whose TTL has passed; returns how many."""
        expired = [key for key, (_, expires_at) in self._in_memory.items() if expires_at <= now]
        for key in expired:
            del self._in_memory[key]
        return len(expired)

    async def issue(self, user_id: str, ttl: int | None = None) -> str:
        """Create a ticket for ``user_id`` and return its token.

        Args:
            user_id: Id of the user allowed to reset their password
            ttl: Lifetime in seconds; defaults to the store TTL

        Returns:
            A random URL-safe token
        """
        ttl = ttl or self.ttl
        token = secrets.token_urlsafe(32)
        key = self._make_key(token)

        if self._redis is None:
            now = datetime.now(UTC)
            self._purge_expired(now)
            self._in_memory[key] = (str(user_id), now + timedelta(seconds=ttl))
            return token

        try:
            await self._redis.setex(key, ttl, str(user_id))
        except RedisError as e:
            raise self._storage_error("issue", e) from e
        return token

    async def lookup(self, token: str) -> str | None:
        """Return the user id for a live ticket, or None."""
        if not token:
            return None
        key = self._make_key(token)

        if self._redis is None:
            entry = self._in_memory.get(key)
            if entry is None:
                return None
            user_id, expires_at = entry
            if datetime.now(UTC) >= expires_at:
                del self._in_memory[key]
                return None
            return user_id

        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise self._storage_error("lookup", e) from e

    async def consume(self, token: str) -> str | None:
        """Atomically return and delete a live ticket.

        Of several concurrent callers with the same token at most one gets
        the user id; the others get None.
        """
        if not token:
            return None
        key = self._make_key(token)

        if self._redis is None:
            entry = self._in_memory.pop(key, None)
            if entry is None:
                return None
            user_id, expires_at = entry
            if datetime.now(UTC) >= expires_at:
                return None
            return user_id

        try:
            return await self._redis.getdel(key)
        except RedisError as e:
            raise self._storage_error("consume", e) from e

    async def revoke(self, token: str) -> None:
        """Delete a ticket; unknown tokens are ignored."""
        if not token:
            return
        key = self._make_key(token)

        if self._redis is None:
            self._in_memory.pop(key, None)
            return

        try:
            await self._redis.delete(key)
        except RedisError as e:
            raise self._storage_error("revoke", e) from e

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            logger.info("Reset ticket store connection closed")


# Global store instance (initialized from settings)
_global_store: ResetTicketStore | None = None


def get_reset_ticket_store() -> ResetTicketStore:
    """Get or create the global reset ticket store."""
    global _global_store

    if _global_store is None:
        redis_url = str(settings.REDIS_URL) if settings.REDIS_URL else None
        _global_store = ResetTicketStore(
            redis_url=redis_url, ttl=settings.PASSWORD_RESET_TTL_SECONDS
        )

    return _global_store


async def close_reset_ticket_store() -> None:
    """Close and forget the global store (application shutdown)."""
    global _global_store

    if _global_store is not None:
        await _global_store.close()
        _global_store = None


__all__ = [
    "RESET_TICKET_PREFIX",
    "ResetTicketStore",
    "close_reset_ticket_store",
    "get_reset_ticket_store",
]
