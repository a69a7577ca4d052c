"""Streaming client for an OpenAI-compatible chat-completions API.

The provider yields text fragments in arrival order. Every failure, whether
at connect time, on a non-2xx status, or mid-stream, is raised as
UpstreamError with a short message that never contains the API key.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog

from shared.logging import redact
from translator.translation.prompts import build_system_prompt

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator

logger = structlog.get_logger()

_SSE_DATA_PREFIX = "data:"
_SSE_DONE = "[DONE]"
_MAX_ERROR_MESSAGE_CHARS = 180


class UpstreamError(RuntimeError):
    """The external provider failed before or during streaming."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranslationProvider(Protocol):
    def stream(self, *, api_key: str, content: str, target_language: str) -> AsyncIterator[str]:
        """Yield translated text fragments as they arrive."""
        ...


def _short_message(text: str) -> str:
    compact = " ".join(redact(text).split())
    if len(compact) <= _MAX_ERROR_MESSAGE_CHARS:
        return compact
    return f"{compact[: _MAX_ERROR_MESSAGE_CHARS - 1]}..."


def _error_message(body: bytes) -> str:
    """Pull error.message out of a provider error body, falling back to the raw text."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        payload = json.loads(text)
    except ValueError:
        return _short_message(text)
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return _short_message(error["message"])
    return _short_message(text)


def _sse_data(line: str) -> str | None:
    if not line.startswith(_SSE_DATA_PREFIX):
        return None
    return line[len(_SSE_DATA_PREFIX) :].strip() or None


def is_stream_end(line: str) -> bool:
    return _sse_data(line) == _SSE_DONE


def parse_stream_line(line: str) -> str | None:
    """Return the content fragment carried by one SSE line, or None if it has none.

    Raises UpstreamError for undecodable frames and in-stream error objects.
    """
    data = _sse_data(line)
    if data is None or data == _SSE_DONE:
        return None
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise UpstreamError("Malformed stream frame from provider") from e
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message", "provider error")
        raise UpstreamError(_short_message(str(message)))
    try:
        delta = payload["choices"][0].get("delta") or {}
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) and content else None


class OpenAIChatProvider:
    """Chat-completions streaming over a shared httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> None:
        self._client = client
        self._endpoint = f"{base_url.rstrip('/')}/chat/completions"
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    def _payload(self, content: str, target_language: str) -> dict:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": build_system_prompt(target_language)},
                {"role": "user", "content": content},
            ],
            "stream": True,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

    async def stream(self, *, api_key: str, content: str, target_language: str) -> AsyncGenerator[str]:
        headers = {"Authorization": f"Bearer {api_key}", "Accept": "text/event-stream"}
        try:
            async with self._client.stream(
                "POST",
                self._endpoint,
                headers=headers,
                json=self._payload(content, target_language),
            ) as response:
                if response.status_code >= httpx.codes.BAD_REQUEST:
                    body = await response.aread()
                    raise UpstreamError(
                        f"Provider returned {response.status_code}: {_error_message(body)}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    if is_stream_end(line):
                        return
                    fragment = parse_stream_line(line)
                    if fragment:
                        yield fragment
        except httpx.TimeoutException as e:
            raise UpstreamError("Provider request timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Provider transport error: {_short_message(str(e))}") from e
