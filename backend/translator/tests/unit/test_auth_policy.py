"""Tests for route auth policy markers and startup validation."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.routing import Mount, Route

from shared.auth.models import SessionRecord
from shared.errors import AuthError, SessionStoreError
from translator.auth.backend import BearerTokenBackend
from translator.auth.models import AuthenticatedUser
from translator.auth.policy import (
    AUTH_POLICY_ATTR,
    collect_protected_api_paths,
    protected_api,
    public_route,
    validate_route_auth_policy,
)
from translator.server.rate_limit import rate_limited


@pytest.fixture
def auth_service() -> AsyncMock:
    service = AsyncMock()
    service.resolve.return_value = SessionRecord(username="mara", encrypted_credential="enc")
    return service


def _make_request(auth_service: AsyncMock, authorization: str | None = None) -> Request:
    app = Starlette()
    app.state.auth_backend = BearerTokenBackend(auth_service)
    headers = [] if authorization is None else [(b"authorization", authorization.encode())]
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/translate-stream",
        "query_string": b"",
        "headers": headers,
        "app": app,
    }
    return Request(scope)


def _make_handler() -> object:
    """Return a fresh async handler with no attributes from prior tests."""

    async def handler(request: Request) -> str:
        return "ok"

    return handler


class TestProtectedApi:
    async def test_missing_token_raises_401_without_lookup(self, auth_service) -> None:
        wrapped = protected_api(_make_handler())

        with pytest.raises(HTTPException) as exc_info:
            await wrapped(_make_request(auth_service))

        assert exc_info.value.status_code == 401
        auth_service.resolve.assert_not_awaited()

    async def test_unknown_token_raises_401(self, auth_service) -> None:
        auth_service.resolve.side_effect = AuthError("Invalid or expired session")
        wrapped = protected_api(_make_handler())

        with pytest.raises(HTTPException) as exc_info:
            await wrapped(_make_request(auth_service, "Bearer nope"))

        assert exc_info.value.status_code == 401

    async def test_authenticated_passes_through_with_user(self, auth_service) -> None:
        seen: list[AuthenticatedUser] = []

        async def handler(request: Request) -> str:
            seen.append(request.user)
            return "ok"

        wrapped = protected_api(handler)

        assert await wrapped(_make_request(auth_service, "Bearer tok")) == "ok"
        assert seen[0].username == "mara"
        assert seen[0].token == "tok"
        auth_service.resolve.assert_awaited_once_with("tok")

    async def test_store_outage_answers_503(self, auth_service) -> None:
        auth_service.resolve.side_effect = SessionStoreError("redis down")
        called = []

        async def handler(request: Request) -> str:
            called.append(request)
            return "ok"

        response = await protected_api(handler)(_make_request(auth_service, "Bearer tok"))

        assert response.status_code == 503
        assert json.loads(response.body) == {"error": "Session store unavailable"}
        assert called == []

    def test_marker_survives_rate_limit_wrapper(self) -> None:
        wrapped = rate_limited("translate", 30, 60)(protected_api(_make_handler()))
        assert getattr(wrapped, AUTH_POLICY_ATTR) == "protected_api"


class TestPublicRoute:
    async def test_does_not_block_or_resolve_sessions(self, auth_service) -> None:
        wrapped = public_route(_make_handler())
        assert await wrapped(_make_request(auth_service, "Bearer stale")) == "ok"
        auth_service.resolve.assert_not_awaited()

    def test_marker_is_on_wrapper_only(self) -> None:
        handler = _make_handler()
        wrapped = public_route(handler)
        assert getattr(wrapped, AUTH_POLICY_ATTR) == "public"
        assert not hasattr(handler, AUTH_POLICY_ATTR)


class TestValidateRouteAuthPolicy:
    def test_all_routes_classified_passes(self) -> None:
        routes = [
            Route("/a", public_route(_make_handler()), methods=["GET"], name="a"),
            Route("/b", protected_api(_make_handler()), methods=["GET"], name="b"),
        ]
        validate_route_auth_policy(routes)

    def test_unclassified_route_reported_with_path_and_name(self) -> None:
        routes = [
            Route("/ok", public_route(_make_handler()), methods=["GET"], name="ok"),
            Route("/missing", _make_handler(), methods=["GET"], name="missing_route"),
        ]
        with pytest.raises(RuntimeError, match=r"/missing \(missing_route\)"):
            validate_route_auth_policy(routes)

    def test_mount_is_exempt(self) -> None:
        routes = [Mount("/static", app=Starlette(), name="static")]
        validate_route_auth_policy(routes)


class TestCollectProtectedApiPaths:
    def test_only_protected_paths_collected(self) -> None:
        routes = [
            Route("/auth/me", protected_api(_make_handler()), methods=["GET"]),
            Route(
                "/translate-stream",
                rate_limited("translate", 30, 60)(protected_api(_make_handler())),
                methods=["POST"],
            ),
            Route("/health", public_route(_make_handler()), methods=["GET"]),
        ]
        assert collect_protected_api_paths(routes) == {"/auth/me", "/translate-stream"}
