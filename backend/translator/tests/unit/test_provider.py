"""Tests for the OpenAI-compatible streaming provider client."""

from __future__ import annotations

import json

import httpx
import pytest

from translator.translation.provider import (
    OpenAIChatProvider,
    UpstreamError,
    is_stream_end,
    parse_stream_line,
)

API_KEY = "sk-test-0123456789abcdef"


def _frame(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n"


def _provider(handler) -> OpenAIChatProvider:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIChatProvider(client, base_url="https://llm.test/v1", model="test-model", max_tokens=100)


async def _collect(provider: OpenAIChatProvider, **kwargs: str) -> list[str]:
    params = {"api_key": API_KEY, "content": "Hello", "target_language": "es", **kwargs}
    return [fragment async for fragment in provider.stream(**params)]


class TestParseStreamLine:
    def test_content_fragment(self):
        assert parse_stream_line(_frame("Hola").strip()) == "Hola"

    def test_done_marker(self):
        assert is_stream_end("data: [DONE]")
        assert parse_stream_line("data: [DONE]") is None

    @pytest.mark.parametrize("line", ["", ": keep-alive", "event: ping", "data:"])
    def test_non_data_lines_carry_nothing(self, line):
        assert parse_stream_line(line) is None
        assert not is_stream_end(line)

    def test_frame_without_content(self):
        line = "data: " + json.dumps({"choices": [{"delta": {"role": "assistant"}}]})
        assert parse_stream_line(line) is None

    def test_frame_without_choices(self):
        assert parse_stream_line('data: {"id": "x", "choices": []}') is None

    def test_malformed_json_raises(self):
        with pytest.raises(UpstreamError, match="Malformed"):
            parse_stream_line("data: {not json")

    def test_error_object_raises_redacted(self):
        line = 'data: {"error": {"message": "bad key sk-abcdefghijklmnop"}}'
        with pytest.raises(UpstreamError) as exc_info:
            parse_stream_line(line)
        assert "sk-abcdefghijklmnop" not in str(exc_info.value)


class TestOpenAIChatProvider:
    async def test_streams_fragments_in_order_and_stops_at_done(self):
        def handler(_request: httpx.Request) -> httpx.Response:
            body = _frame("Hola ") + _frame("mundo") + "data: [DONE]\n\n" + _frame("ignored")
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        assert await _collect(_provider(handler)) == ["Hola ", "mundo"]

    async def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="data: [DONE]\n\n")

        await _collect(_provider(handler), content="Page text", target_language="de")

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["authorization"] == f"Bearer {API_KEY}"
        payload = json.loads(request.content)
        assert payload["model"] == "test-model"
        assert payload["stream"] is True
        assert payload["max_tokens"] == 100
        assert payload["temperature"] == 0.3
        assert payload["messages"][0]["role"] == "system"
        assert "Translate the following text to de." in payload["messages"][0]["content"]
        assert payload["messages"][1] == {"role": "user", "content": "Page text"}

    async def test_error_status_raises_with_provider_message(self):
        def handler(_request: httpx.Request) -> httpx.Response:
            body = {"error": {"message": f"Incorrect API key provided: {API_KEY}"}}
            return httpx.Response(401, json=body)

        with pytest.raises(UpstreamError) as exc_info:
            await _collect(_provider(handler))

        assert exc_info.value.status_code == 401
        assert "Incorrect API key provided" in str(exc_info.value)
        assert API_KEY not in str(exc_info.value)

    async def test_error_message_is_length_capped(self):
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="x" * 1000)

        with pytest.raises(UpstreamError) as exc_info:
            await _collect(_provider(handler))
        assert len(str(exc_info.value)) < 250

    async def test_timeout_raises_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamError, match="timed out"):
            await _collect(_provider(handler))

    async def test_transport_error_raises_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError, match="transport error"):
            await _collect(_provider(handler))

    async def test_error_frame_mid_stream_raises_after_fragments(self):
        def handler(_request: httpx.Request) -> httpx.Response:
            body = _frame("partial") + 'data: {"error": {"message": "overloaded"}}\n\n'
            return httpx.Response(200, text=body)

        received: list[str] = []
        with pytest.raises(UpstreamError, match="overloaded"):
            async for fragment in _provider(handler).stream(api_key=API_KEY, content="x", target_language="es"):
                received.append(fragment)
        assert received == ["partial"]
