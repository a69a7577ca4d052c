"""Per-request translation relay: cache, demo fallback, or provider stream.

Each request runs as a RelayRun state machine:

    START -> CACHE_HIT -> DONE
    START -> NO_CREDENTIAL -> STREAMING -> DONE
    START -> UPSTREAM -> STREAMING -> DONE | FAILED
    UPSTREAM | NO_CREDENTIAL | STREAMING -> CANCELLED  (consumer went away)

Exactly one terminal chunk is emitted per run, and only a run that reaches
DONE writes to the cache.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from shared.errors import ConfigError, CryptoError
from translator.translation.demo import demo_chunks, demo_translation
from translator.translation.provider import UpstreamError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from shared.auth.vault import CredentialVault
    from translator.translation.cache import TranslationCache
    from translator.translation.provider import TranslationProvider

logger = structlog.get_logger()

TRANSLATION_FAILED = "Translation failed. Please try again."


class RelayState(StrEnum):
    START = "start"
    CACHE_HIT = "cache_hit"
    NO_CREDENTIAL = "no_credential"
    UPSTREAM = "upstream"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[RelayState, frozenset[RelayState]] = {
    RelayState.START: frozenset({RelayState.CACHE_HIT, RelayState.NO_CREDENTIAL, RelayState.UPSTREAM}),
    RelayState.CACHE_HIT: frozenset({RelayState.DONE}),
    RelayState.NO_CREDENTIAL: frozenset({RelayState.STREAMING, RelayState.CANCELLED}),
    RelayState.UPSTREAM: frozenset({RelayState.STREAMING, RelayState.FAILED, RelayState.CANCELLED}),
    RelayState.STREAMING: frozenset({RelayState.DONE, RelayState.FAILED, RelayState.CANCELLED}),
    RelayState.DONE: frozenset(),
    RelayState.FAILED: frozenset(),
    RelayState.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset({RelayState.DONE, RelayState.FAILED, RelayState.CANCELLED})


@dataclass(frozen=True)
class TranslationRequest:
    username: str
    content: str
    target_language: str
    encrypted_credential: str | None = None
    force: bool = False


@dataclass(frozen=True)
class StreamChunk:
    content: str = ""
    is_done: bool = False
    error: str | None = None

    def to_payload(self) -> dict:
        if self.error is not None:
            return {"error": self.error, "isDone": True}
        return {"content": self.content, "isDone": self.is_done}


class StreamRelay:
    """Shared collaborators for relay runs. Holds no per-request state."""

    def __init__(
        self,
        cache: TranslationCache,
        provider: TranslationProvider,
        vault: CredentialVault,
        *,
        credential_prefix: str = "sk-",
        demo_chunk_delay: float = 0.05,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.vault = vault
        self.credential_prefix = credential_prefix
        self.demo_chunk_delay = demo_chunk_delay

    def open(self, request: TranslationRequest) -> RelayRun:
        return RelayRun(self, request)


class RelayRun:
    """One request's pass through the relay. Iterate it to receive chunks."""

    def __init__(self, relay: StreamRelay, request: TranslationRequest) -> None:
        self._relay = relay
        self._request = request
        self.state = RelayState.START
        self.history: list[RelayState] = [RelayState.START]
        self._log = logger.bind(username=request.username, target_language=request.target_language)

    def _transition(self, target: RelayState) -> None:
        if target not in _TRANSITIONS[self.state]:
            msg = f"Illegal relay transition {self.state} -> {target}"
            raise RuntimeError(msg)
        self.state = target
        self.history.append(target)

    def __aiter__(self) -> AsyncGenerator[StreamChunk]:
        return self._run()

    async def _run(self) -> AsyncGenerator[StreamChunk]:
        if self.state is not RelayState.START:
            msg = "RelayRun can only be iterated once"
            raise RuntimeError(msg)
        try:
            cached = self._cached()
            if cached is not None:
                self._transition(RelayState.CACHE_HIT)
                self._log.info("translation cache hit")
                self._transition(RelayState.DONE)
                yield StreamChunk(content=cached, is_done=True)
                return

            api_key = self._usable_credential()
            if api_key is None:
                self._transition(RelayState.NO_CREDENTIAL)
                self._log.info("no usable upstream credential, streaming demo translation")
                async with contextlib.aclosing(self._stream_demo()) as chunks:
                    async for chunk in chunks:
                        yield chunk
                return

            self._transition(RelayState.UPSTREAM)
            async with contextlib.aclosing(self._stream_upstream(api_key)) as chunks:
                async for chunk in chunks:
                    yield chunk
        except (asyncio.CancelledError, GeneratorExit):
            if self.state not in TERMINAL_STATES:
                self._transition(RelayState.CANCELLED)
                self._log.info("translation cancelled by client")
            raise

    def _cached(self) -> str | None:
        request = self._request
        if request.force:
            self._log.info("forced translation, bypassing cache")
            return None
        return self._relay.cache.get(request.username, request.content, request.target_language)

    def _usable_credential(self) -> str | None:
        """Decrypt the session credential. None when absent, undecryptable, or malformed."""
        blob = self._request.encrypted_credential
        if not blob:
            return None
        try:
            api_key = self._relay.vault.decrypt(blob)
        except (CryptoError, ConfigError):
            self._log.warning("failed to decrypt session credential")
            return None
        if not api_key.startswith(self._relay.credential_prefix):
            return None
        return api_key

    async def _stream_demo(self) -> AsyncGenerator[StreamChunk]:
        request = self._request
        text = demo_translation(request.content, request.target_language)
        self._transition(RelayState.STREAMING)
        accumulated: list[str] = []
        for piece in demo_chunks(text):
            accumulated.append(piece)
            yield StreamChunk(content=piece)
            await asyncio.sleep(self._relay.demo_chunk_delay)
        self._complete("".join(accumulated))
        yield StreamChunk(is_done=True)

    async def _stream_upstream(self, api_key: str) -> AsyncGenerator[StreamChunk]:
        request = self._request
        accumulated: list[str] = []
        fragments = self._relay.provider.stream(
            api_key=api_key,
            content=request.content,
            target_language=request.target_language,
        )
        try:
            async with contextlib.aclosing(fragments):
                self._transition(RelayState.STREAMING)
                async for fragment in fragments:
                    accumulated.append(fragment)
                    yield StreamChunk(content=fragment)
        except UpstreamError as e:
            self._fail(str(e), fragments=len(accumulated))
            yield StreamChunk(error=TRANSLATION_FAILED)
            return
        except Exception:
            self._log.exception("unexpected translation relay error")
            self._fail("unexpected error", fragments=len(accumulated))
            yield StreamChunk(error=TRANSLATION_FAILED)
            return

        self._complete("".join(accumulated))
        yield StreamChunk(is_done=True)

    def _complete(self, text: str) -> None:
        """Enter DONE and commit the finished text to the cache."""
        self._transition(RelayState.DONE)
        request = self._request
        if not text:
            self._log.warning("empty translation, not caching")
            return
        self._relay.cache.put(request.username, request.content, request.target_language, text)
        self._log.info("translation completed", chars=len(text))

    def _fail(self, reason: str, *, fragments: int) -> None:
        self._transition(RelayState.FAILED)
        self._log.warning("translation failed", reason=reason, fragments=fragments)
