"""Per-route request rate limiting with a Redis backend and an in-process fallback.

The limiter fails open: if the backend errors, the request proceeds.
"""

from __future__ import annotations

import functools
import math
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from redis.asyncio import Redis
    from starlette.requests import HTTPConnection, Request
    from starlette.responses import Response

RATE_LIMIT_KEY_PREFIX = "translator:ratelimit:"

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # unix seconds

    def headers(self) -> dict[str, str]:
        return {"X-RateLimit-Remaining": str(self.remaining), "X-RateLimit-Reset": str(self.reset_at)}


class RateLimitBackend(Protocol):
    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult: ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimitBackend:
    """Fixed-window counters in a per-process dict.

    Only correct for a single process: separate workers or instances each
    keep their own counts.

    hit() never awaits between reading and writing a window, so it is atomic
    with respect to other requests on the same event loop.
    """

    def __init__(self) -> None:
        self._windows: dict[str, _Window] = {}

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = time.time()
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            window = _Window(count=1, reset_at=now + window_seconds)
            self._windows[key] = window
        else:
            window.count += 1
        return RateLimitResult(
            allowed=window.count <= limit,
            remaining=max(0, limit - window.count),
            reset_at=math.ceil(window.reset_at),
        )

    def clear(self) -> None:
        self._windows.clear()


class RedisRateLimitBackend:
    """Sliding-window log in a Redis sorted set, shared by every instance.

    Only allowed requests stay in the log. A denied hit is removed again, so
    a client over the limit regains quota as its accepted requests age out.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = RATE_LIMIT_KEY_PREFIX) -> None:
        self._redis = redis
        self._key_prefix = key_prefix

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = time.time()
        redis_key = f"{self._key_prefix}{key}"
        member = f"{now:.6f}:{secrets.token_hex(4)}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.expire(redis_key, window_seconds)
            _, _, count, oldest, _ = await pipe.execute()

        allowed = count <= limit
        if not allowed:
            await self._redis.zrem(redis_key, member)

        oldest_score = oldest[0][1] if oldest else now
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, limit - count),
            reset_at=math.ceil(oldest_score + window_seconds),
        )


class RateLimiter:
    """Route-level limiter over a pluggable backend."""

    def __init__(self, backend: RateLimitBackend) -> None:
        self._backend = backend

    async def check(self, route: str, client: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request for route+client. Any backend failure allows the request."""
        try:
            return await self._backend.hit(f"{route}:{client}", limit, window_seconds)
        except Exception:
            logger.warning("rate limiter unavailable, allowing request", route=route, exc_info=True)
            return RateLimitResult(allowed=True, remaining=limit, reset_at=math.ceil(time.time() + window_seconds))


def build_rate_limiter(redis: Redis | None) -> RateLimiter:
    if redis is not None:
        return RateLimiter(RedisRateLimitBackend(redis))
    return RateLimiter(InMemoryRateLimitBackend())


def client_identity(conn: HTTPConnection) -> str:
    """First X-Forwarded-For address, else the peer address."""
    forwarded = conn.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if conn.client is not None and conn.client.host:
        return conn.client.host
    return "unknown"


def rate_limited(name: str, limit: int, window_seconds: int) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap an async endpoint with a rate limit check.

    Quota headers are set on every response, including 429s and auth failures
    raised further down. A denied request never reaches the endpoint. The
    limiter is read from ``request.app.state.rate_limiter``.
    """

    def decorator(endpoint: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(endpoint)
        async def wrapper(request: Request, **kwargs: str) -> Response:
            limiter: RateLimiter = request.app.state.rate_limiter
            result = await limiter.check(name, client_identity(request), limit, window_seconds)
            headers = result.headers()
            if not result.allowed:
                logger.info("rate limit exceeded", route=name)
                return JSONResponse({"error": "Rate limit exceeded"}, status_code=429, headers=headers)
            try:
                response = await endpoint(request, **kwargs)
            except HTTPException as e:
                raise HTTPException(e.status_code, e.detail, headers={**(e.headers or {}), **headers}) from e
            response.headers.update(headers)
            return response

        return wrapper

    return decorator
