"""Session persistence: a Redis-backed durable store and a stateless signed-token store.

The variant is chosen once at startup by build_session_store(): with a Redis
client sessions are durable, revocable, and counted toward the active-session
cap; without one every session lives inside its signed token.
"""

from __future__ import annotations

import json
import secrets
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog
from redis.exceptions import RedisError

from shared.auth.models import SessionRecord
from shared.auth.tokens import create_session_token, verify_session_token
from shared.errors import ConfigError, SessionStoreError

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from shared.auth.settings import AuthSettings

SESSION_KEY_PREFIX = "session:"
SESSION_REGISTRY_KEY = "sessions"

logger = structlog.get_logger()


@runtime_checkable
class SessionStore(Protocol):
    """Map opaque tokens to (username, encrypted credential)."""

    enforces_session_cap: bool

    async def create(self, username: str, encrypted_credential: str, ttl_seconds: int) -> str: ...

    async def resolve(self, token: str) -> SessionRecord | None: ...

    async def revoke(self, token: str) -> None: ...

    async def count_active(self) -> int: ...


class RedisSessionStore:
    """Durable sessions in Redis with TTL expiry.

    A separate set of live tokens answers count_active() without a keyspace
    scan. Entries whose record already expired are pruned lazily on count.
    """

    enforces_session_cap = True

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = SESSION_KEY_PREFIX,
        registry_key: str = SESSION_REGISTRY_KEY,
    ) -> None:
        self._redis = redis
        self._key_prefix = key_prefix
        self._registry_key = registry_key

    def _key(self, token: str) -> str:
        return f"{self._key_prefix}{token}"

    async def create(self, username: str, encrypted_credential: str, ttl_seconds: int) -> str:
        token = secrets.token_hex(32)
        record = json.dumps({"username": username, "encrypted_credential": encrypted_credential})
        try:
            await self._redis.set(self._key(token), record, ex=ttl_seconds)
            await self._redis.sadd(self._registry_key, token)
        except RedisError as e:
            raise SessionStoreError(f"Failed to create session: {e}") from e
        return token

    async def resolve(self, token: str) -> SessionRecord | None:
        try:
            raw = await self._redis.get(self._key(token))
        except RedisError as e:
            raise SessionStoreError(f"Failed to read session: {e}") from e
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("discarding malformed session record")
            return None
        if not isinstance(data, dict):
            return None
        username = data.get("username")
        encrypted_credential = data.get("encrypted_credential")
        if not isinstance(username, str) or not isinstance(encrypted_credential, str):
            return None
        return SessionRecord(username=username, encrypted_credential=encrypted_credential)

    async def revoke(self, token: str) -> None:
        try:
            await self._redis.delete(self._key(token))
            await self._redis.srem(self._registry_key, token)
        except RedisError as e:
            raise SessionStoreError(f"Failed to delete session: {e}") from e

    async def prune(self) -> int:
        """Drop registry entries whose session record has expired. Return count removed."""
        try:
            tokens = list(await self._redis.smembers(self._registry_key))
            if not tokens:
                return 0
            stale = [token for token in tokens if not await self._redis.exists(self._key(token))]
            if stale:
                await self._redis.srem(self._registry_key, *stale)
        except RedisError as e:
            raise SessionStoreError(f"Failed to prune sessions: {e}") from e
        if stale:
            logger.info("pruned expired sessions", count=len(stale))
        return len(stale)

    async def count_active(self) -> int:
        await self.prune()
        try:
            return int(await self._redis.scard(self._registry_key))
        except RedisError as e:
            raise SessionStoreError(f"Failed to count sessions: {e}") from e


class StatelessSessionStore:
    """Sessions encoded entirely in HMAC-signed tokens.

    Nothing is stored server-side: revoke() is a no-op (a token stays valid
    until it expires) and count_active() reports 0 because no cap can be
    enforced.
    """

    enforces_session_cap = False

    def __init__(self, secret: str) -> None:
        self._secret = secret

    async def create(self, username: str, encrypted_credential: str, ttl_seconds: int) -> str:
        return create_session_token(username, encrypted_credential, ttl_seconds, self._secret)

    async def resolve(self, token: str) -> SessionRecord | None:
        try:
            claims = verify_session_token(token, self._secret)
        except ConfigError:
            logger.error("cannot verify session token without an app secret")
            return None
        if claims is None:
            return None
        return SessionRecord(username=claims.username, encrypted_credential=claims.encrypted_credential)

    async def revoke(self, token: str) -> None:  # noqa: ARG002
        logger.debug("stateless session cannot be revoked before expiry")

    async def count_active(self) -> int:
        return 0


def build_session_store(auth_settings: AuthSettings, redis: Redis | None) -> SessionStore:
    """Pick the session backend for this process."""
    if redis is not None:
        logger.info("using durable session store")
        return RedisSessionStore(redis)
    logger.info("no shared store configured, using stateless session tokens")
    return StatelessSessionStore(auth_settings.app_secret)
