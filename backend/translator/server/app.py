from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING, cast

import httpx
import structlog
from redis.asyncio import Redis
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from shared.auth import AuthService, CredentialVault, build_session_store
from shared.auth.settings import AuthSettings
from shared.logging import setup_logging
from translator.auth.backend import BearerTokenBackend
from translator.auth.policy import (
    collect_protected_api_paths,
    protected_api,
    public_route,
    validate_route_auth_policy,
)
from translator.notify import NotificationDispatcher, NotifySettings, build_notifier
from translator.server.rate_limit import build_rate_limiter, rate_limited
from translator.server.settings import TranslatorServerSettings
from translator.translation.cache import TranslationCache
from translator.translation.provider import OpenAIChatProvider
from translator.translation.relay import StreamRelay
from translator.views import cache_status, clear_cache, health, login, logout, me, translate_stream

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.requests import Request

    from translator.translation.provider import TranslationProvider

PROVIDER_CONNECT_TIMEOUT_SECONDS = 10.0


def _make_auth_error_handler(
    protected_api_paths: set[str],
) -> Callable[[Request, Exception], Awaitable[Response]]:
    """Build an HTTPException handler that rewrites 401s on protected endpoints as JSON."""

    async def _auth_error_handler(request: Request, exc: Exception) -> Response:
        """Rate-limit headers attached to the exception are kept on the response."""
        http_exc = cast("HTTPException", exc)
        if http_exc.status_code == HTTPStatus.UNAUTHORIZED and request.url.path in protected_api_paths:
            return JSONResponse(
                {"error": "Authentication required"},
                status_code=HTTPStatus.UNAUTHORIZED,
                headers=http_exc.headers,
            )
        return PlainTextResponse(http_exc.detail or "", status_code=http_exc.status_code, headers=http_exc.headers)

    return _auth_error_handler


def create_app(
    settings: TranslatorServerSettings | None = None,
    auth_settings: AuthSettings | None = None,
    *,
    redis: Redis | None = None,
    provider: TranslationProvider | None = None,
    notifier: NotificationDispatcher | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = TranslatorServerSettings()
    if auth_settings is None:  # pragma: no cover
        auth_settings = AuthSettings()

    # Clients the app creates itself are closed on shutdown; injected ones are not.
    owned_redis: Redis | None = None
    owned_http: httpx.AsyncClient | None = None

    if redis is None and settings.redis_url:
        redis = Redis.from_url(settings.redis_url, decode_responses=True)
        owned_redis = redis

    if provider is None:
        owned_http = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.provider_timeout_seconds, connect=PROVIDER_CONNECT_TIMEOUT_SECONDS),
        )
        provider = OpenAIChatProvider(
            owned_http,
            base_url=settings.provider_base_url,
            model=settings.provider_model,
            temperature=settings.provider_temperature,
            max_tokens=settings.provider_max_tokens,
        )

    vault = CredentialVault(auth_settings.app_secret)
    if not vault.configured:
        logger.warning("AUTH_APP_SECRET is not set, logins will fail until it is configured")
    if not auth_settings.users:
        logger.warning("AUTH_USERS is empty, nobody can log in")

    session_store = build_session_store(auth_settings, redis)
    auth_service = AuthService(auth_settings, session_store, vault, notifier=notifier)
    translation_cache = TranslationCache()
    relay = StreamRelay(
        translation_cache,
        provider,
        vault,
        credential_prefix=auth_settings.credential_prefix,
        demo_chunk_delay=settings.demo_chunk_delay,
    )

    login_limit = rate_limited("login", settings.login_rate_limit, settings.login_window_seconds)
    translate_limit = rate_limited("translate", settings.translate_rate_limit, settings.translate_window_seconds)

    routes = [
        # Protected JSON routes (401 JSON when unauthenticated)
        Route("/auth/logout", protected_api(logout), methods=["POST"], name="logout"),
        Route("/auth/me", protected_api(me), methods=["GET"], name="me"),
        Route(
            "/translate-stream",
            translate_limit(protected_api(translate_stream)),
            methods=["POST"],
            name="translate_stream",
        ),
        # Public routes
        Route("/auth/login", public_route(login_limit(login)), methods=["POST"], name="login"),
        Route("/health", public_route(health), methods=["GET"], name="health"),
        Route("/cache-status", public_route(cache_status), methods=["GET"], name="cache_status"),
        Route("/cache", public_route(clear_cache), methods=["DELETE"], name="clear_cache"),
    ]

    validate_route_auth_policy(routes)
    protected_api_paths = collect_protected_api_paths(routes)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        if notifier is not None:
            await notifier.aclose()
        if owned_http is not None:
            await owned_http.aclose()
        if owned_redis is not None:
            await owned_redis.aclose()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={HTTPException: _make_auth_error_handler(protected_api_paths)},
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    app.state.settings = settings
    app.state.auth_settings = auth_settings
    app.state.auth_service = auth_service
    app.state.auth_backend = BearerTokenBackend(auth_service)
    app.state.rate_limiter = build_rate_limiter(redis)
    app.state.translation_cache = translation_cache
    app.state.relay = relay

    logger.info(
        "translator server ready",
        session_store=type(session_store).__name__,
        notifications=notifier is not None,
    )
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory translator.server.app:get_app."""
    s = TranslatorServerSettings()
    auth = AuthSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s, auth_settings=auth, notifier=build_notifier(NotifySettings()))
