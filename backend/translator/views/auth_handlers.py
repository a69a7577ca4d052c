"""Auth endpoints: login, logout, and the current-session lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.responses import JSONResponse

from shared.auth.models import ClientInfo
from shared.errors import AuthError, ConfigError, InputValidationError, SessionCapacityError, SessionStoreError
from translator.server.rate_limit import client_identity
from translator.views.handlers import parse_json_body
from translator.views.types import LoginRequest

if TYPE_CHECKING:
    from starlette.requests import Request

    from shared.auth.service import AuthService
    from translator.auth.models import AuthenticatedUser

logger = structlog.get_logger()

MISSING_LOGIN_FIELDS = "Missing username, password, or upstreamCredential"


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip=client_identity(request),
        user_agent=request.headers.get("user-agent", "unknown"),
        host=request.headers.get("host", "unknown"),
    )


async def login(request: Request) -> JSONResponse:
    """POST /auth/login - verify roster credentials and issue a bearer token."""
    auth_service: AuthService = request.app.state.auth_service

    body = await parse_json_body(request)
    if body is None:
        return _error(MISSING_LOGIN_FIELDS, 400)
    try:
        req = LoginRequest.model_validate(body)
    except ValidationError:
        return _error(MISSING_LOGIN_FIELDS, 400)

    try:
        result = await auth_service.login(
            req.username,
            req.password,
            req.upstream_credential,
            client=client_info(request),
        )
    except InputValidationError as e:
        return _error(str(e), 400)
    except AuthError as e:
        return _error(str(e), 401)
    except SessionCapacityError as e:
        return _error(str(e), 429)
    except ConfigError:
        logger.error("login unavailable, server misconfigured", exc_info=True)
        return _error("Server misconfigured", 500)
    except SessionStoreError:
        logger.error("login failed, session store unavailable", exc_info=True)
        return _error("Login failed", 500)
    except Exception:
        logger.exception("login failed")
        return _error("Login failed", 500)

    return JSONResponse(
        {
            "token": result.token,
            "username": result.username,
            "expiresIn": result.expires_in,
            "emailQueued": result.notification_queued,
        },
    )


async def logout(request: Request) -> JSONResponse:
    """POST /auth/logout - revoke the caller's session. Always succeeds."""
    auth_service: AuthService = request.app.state.auth_service
    user: AuthenticatedUser = request.user
    await auth_service.logout(user.token)
    logger.info("logout", username=user.username)
    return JSONResponse({"ok": True})


async def me(request: Request) -> JSONResponse:
    """GET /auth/me - report who the bearer token belongs to."""
    user: AuthenticatedUser = request.user
    return JSONResponse({"username": user.username})
