"""Translator authentication: Starlette backend, user model, and route policy."""

from translator.auth.backend import BearerTokenBackend, bearer_token, on_auth_error
from translator.auth.models import AuthenticatedUser
from translator.auth.policy import protected_api, public_route, validate_route_auth_policy

__all__ = [
    "AuthenticatedUser",
    "BearerTokenBackend",
    "bearer_token",
    "on_auth_error",
    "protected_api",
    "public_route",
    "validate_route_auth_policy",
]
