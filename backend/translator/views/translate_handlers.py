"""Streaming translation endpoint."""

from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.responses import JSONResponse, StreamingResponse

from translator.translation.relay import TranslationRequest
from translator.views.handlers import parse_json_body
from translator.views.types import TranslateRequest

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from translator.auth.models import AuthenticatedUser
    from translator.translation.relay import RelayRun, StreamChunk, StreamRelay

logger = structlog.get_logger()

MISSING_TRANSLATE_FIELDS = "Missing content or targetLanguage"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_event(chunk: StreamChunk) -> str:
    return f"data: {json.dumps(chunk.to_payload())}\n\n"


async def _event_stream(run: RelayRun) -> AsyncGenerator[str]:
    async with contextlib.aclosing(aiter(run)) as chunks:
        async for chunk in chunks:
            yield sse_event(chunk)


async def translate_stream(request: Request) -> JSONResponse | StreamingResponse:
    """POST /translate-stream - relay one page translation as server-sent events."""
    relay: StreamRelay = request.app.state.relay
    user: AuthenticatedUser = request.user

    body = await parse_json_body(request)
    if body is None:
        return JSONResponse({"error": MISSING_TRANSLATE_FIELDS}, status_code=400)
    try:
        req = TranslateRequest.model_validate(body)
    except ValidationError:
        return JSONResponse({"error": MISSING_TRANSLATE_FIELDS}, status_code=400)
    if not req.content or not req.target_language:
        return JSONResponse({"error": MISSING_TRANSLATE_FIELDS}, status_code=400)

    logger.info(
        "translation requested",
        username=user.username,
        target_language=req.target_language,
        chars=len(req.content),
        force=req.force,
    )
    run = relay.open(
        TranslationRequest(
            username=user.username,
            content=req.content,
            target_language=req.target_language,
            encrypted_credential=user.encrypted_credential,
            force=req.force,
        ),
    )
    return StreamingResponse(_event_stream(run), media_type="text/event-stream", headers=SSE_HEADERS)
