"""Root conftest: load test environment variables and configure structlog for tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import fakeredis
import pytest
import structlog
from dotenv import load_dotenv
from redis.asyncio.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Configure structlog to route through stdlib logging so caplog works in tests.
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(redis_server):
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def redis_outage(fake_redis, monkeypatch):
    """Return a callable that makes every fake_redis command fail like an unreachable server."""

    async def refuse(*_args, **_kwargs):  # noqa: ANN002, ANN003, ANN202
        raise RedisConnectionError("connection refused")

    def start() -> None:
        monkeypatch.setattr(fake_redis, "execute_command", refuse)
        monkeypatch.setattr(Pipeline, "execute", refuse)

    return start


@pytest.fixture
def expire_now(fake_redis):
    """Return a coroutine function that lets the given keys hit their TTL."""

    async def expire(*keys: str) -> None:
        for key in keys:
            await fake_redis.pexpire(key, 1)
        await asyncio.sleep(0.01)

    return expire
