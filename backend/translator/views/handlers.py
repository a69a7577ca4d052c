"""Public service endpoints: health and translation cache maintenance."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse

from shared.build_info import build_metadata

if TYPE_CHECKING:
    from starlette.requests import Request

    from translator.translation.cache import TranslationCache

logger = structlog.get_logger()


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


async def parse_json_body(request: Request) -> dict | None:
    """Parse a JSON object body. Return None when it is missing, invalid, or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return body


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "timestamp": _timestamp(), **build_metadata()})


async def cache_status(request: Request) -> JSONResponse:
    cache: TranslationCache = request.app.state.translation_cache
    return JSONResponse({"cacheSize": cache.size(), "timestamp": _timestamp()})


async def clear_cache(request: Request) -> JSONResponse:
    cache: TranslationCache = request.app.state.translation_cache
    cleared = cache.size()
    cache.clear()
    logger.info("translation cache cleared", entries=cleared)
    return JSONResponse({"message": "Cache cleared successfully"})
