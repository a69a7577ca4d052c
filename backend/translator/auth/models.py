"""User model attached to request.user on protected routes."""

from __future__ import annotations

from starlette.authentication import BaseUser


class AuthenticatedUser(BaseUser):
    """Authenticated user for Starlette's request.user.

    Created by the bearer token backend. Carries the token and the still
    encrypted upstream credential for the translate relay.
    """

    def __init__(self, username: str, token: str, encrypted_credential: str) -> None:
        self._username = username
        self._token = token
        self._encrypted_credential = encrypted_credential

    @property
    def is_authenticated(self) -> bool:  # pragma: no cover
        return True

    @property
    def display_name(self) -> str:  # pragma: no cover
        return self._username

    @property
    def identity(self) -> str:  # pragma: no cover
        return self._username

    @property
    def username(self) -> str:
        return self._username

    @property
    def token(self) -> str:
        return self._token

    @property
    def encrypted_credential(self) -> str:
        return self._encrypted_credential
