"""Shared fixtures for translator tests."""

from __future__ import annotations

import asyncio

import pytest

from shared.auth.settings import AuthSettings
from translator.server.settings import TranslatorServerSettings
from translator.translation.provider import UpstreamError

TEST_SECRET = "translator-test-secret"
TEST_API_KEY = "sk-test-0123456789abcdef"


class FakeProvider:
    """Scripted TranslationProvider.

    Yields ``fragments`` in order, then optionally raises ``error`` or blocks
    until cancelled when ``hang`` is set. Records every call and whether the
    stream was closed.
    """

    def __init__(
        self,
        fragments: list[str] | None = None,
        *,
        error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self.fragments = fragments if fragments is not None else ["Hola ", "mundo"]
        self.error = error
        self.hang = hang
        self.calls: list[dict[str, str]] = []
        self.closed = False

    async def stream(self, *, api_key: str, content: str, target_language: str):  # noqa: ANN201
        self.calls.append({"api_key": api_key, "content": content, "target_language": target_language})
        try:
            for fragment in self.fragments:
                yield fragment
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def failing_provider() -> FakeProvider:
    return FakeProvider(["partial "], error=UpstreamError("Provider returned 500: boom", status_code=500))


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(
        app_secret=TEST_SECRET,
        users={"mara": "mara-password", "baru": "baru-password"},
        max_active_sessions=2,
    )


@pytest.fixture
def server_settings() -> TranslatorServerSettings:
    return TranslatorServerSettings(
        log_dir="",
        cors_origins=["http://localhost:3000"],
        demo_chunk_delay=0.0,
    )


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY
