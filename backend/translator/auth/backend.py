"""Starlette AuthenticationBackend that resolves bearer session tokens."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.authentication import AuthCredentials, AuthenticationBackend, AuthenticationError
from starlette.responses import JSONResponse

from shared.errors import AuthError, SessionStoreError
from translator.auth.models import AuthenticatedUser

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from shared.auth.service import AuthService

logger = structlog.get_logger()

SESSION_STORE_UNAVAILABLE = "Session store unavailable"


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


class BearerTokenBackend(AuthenticationBackend):
    """Authenticate requests via the Authorization bearer header.

    A missing, malformed, or unknown token leaves the request anonymous;
    route policy decides whether that is a 401. A session store outage is
    raised as AuthenticationError and answered by on_auth_error().
    """

    def __init__(self, auth_service: AuthService) -> None:
        self._auth_service = auth_service

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedUser] | None:
        token = bearer_token(conn.headers.get("authorization"))
        if token is None:
            return None
        try:
            record = await self._auth_service.resolve(token)
        except AuthError:
            return None
        except SessionStoreError as e:
            logger.error("session lookup failed", error=str(e))
            raise AuthenticationError(SESSION_STORE_UNAVAILABLE) from e
        return AuthCredentials(["authenticated"]), AuthenticatedUser(
            username=record.username,
            token=token,
            encrypted_credential=record.encrypted_credential,
        )


def on_auth_error(_conn: HTTPConnection, exc: Exception) -> JSONResponse:
    """Answer a backend failure with 503; the request is not processed further."""
    return JSONResponse({"error": str(exc) or SESSION_STORE_UNAVAILABLE}, status_code=503)
