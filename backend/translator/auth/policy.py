"""Route auth policy helpers for fail-closed authorization.

Each helper wraps a route endpoint and sets the ``AUTH_POLICY_ATTR`` marker
so that startup validation can verify every route has an explicit auth policy.

Bearer sessions are resolved by ``protected_api`` itself, inside the route.
Public routes never consult the session store, and a wrapper applied outside
``protected_api`` (the rate limiter) runs before any session lookup.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from starlette.authentication import AuthenticationError
from starlette.exceptions import HTTPException
from starlette.routing import Mount, Route

from translator.auth.backend import on_auth_error

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import BaseRoute

    from translator.auth.backend import BearerTokenBackend

AUTH_POLICY_ATTR = "__auth_policy__"


def protected_api(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Require a resolved bearer session; raise 401 otherwise.

    The backend is read from ``request.app.state.auth_backend``. On success the
    user is attached as ``request.user``; a session store outage answers 503.
    """

    @functools.wraps(endpoint)
    async def wrapper(request: Request, **kwargs: str) -> Response:
        backend: BearerTokenBackend = request.app.state.auth_backend
        try:
            resolved = await backend.authenticate(request)
        except AuthenticationError as e:
            return on_auth_error(request, e)
        if resolved is None:
            raise HTTPException(status_code=401)
        request.scope["auth"], request.scope["user"] = resolved
        return await endpoint(request, **kwargs)

    setattr(wrapper, AUTH_POLICY_ATTR, "protected_api")
    return wrapper


def public_route(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Mark endpoint as explicitly public (no auth required).

    Returns a thin wrapper so the marker lives on the wrapper and the
    wrapped endpoint is left untouched.
    """

    @functools.wraps(endpoint)
    async def wrapper(request: Request, **kwargs: str) -> Response:
        return await endpoint(request, **kwargs)

    setattr(wrapper, AUTH_POLICY_ATTR, "public")
    return wrapper


def collect_protected_api_paths(routes: list[BaseRoute]) -> set[str]:
    """Return the set of path strings for routes marked ``protected_api``."""
    paths: set[str] = set()
    for route in routes:
        if isinstance(route, Route) and getattr(route.endpoint, AUTH_POLICY_ATTR, None) == "protected_api":
            paths.add(route.path)
    return paths


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Verify every Route has an auth policy marker. Mount routes are exempt.

    Raises RuntimeError listing all unclassified routes if any are found.
    """
    unclassified: list[str] = []
    for route in routes:
        if isinstance(route, Mount):
            continue
        if isinstance(route, Route) and not hasattr(route.endpoint, AUTH_POLICY_ATTR):
            name = route.name or getattr(route.endpoint, "__name__", "unknown")
            unclassified.append(f"{route.path} ({name})")

    if unclassified:
        details = ", ".join(unclassified)
        msg = f"Unclassified routes missing auth policy: {details}"
        raise RuntimeError(msg)
