"""Error taxonomy shared by the auth layer and the translator service.

Each error maps to a single HTTP outcome at the view boundary; see
``translator.views`` for the mapping.
"""

from __future__ import annotations


class ConfigError(RuntimeError):
    """Server configuration is missing something an operation needs (e.g. the app secret)."""


class AuthError(Exception):
    """Authentication failure. The message is uniform regardless of root cause."""


class CryptoError(Exception):
    """Encrypted or signed payload is malformed or failed authentication."""


class InputValidationError(ValueError):
    """A request is missing required fields or carries malformed values."""


class SessionStoreError(RuntimeError):
    """The session backend could not be reached or returned an error."""


class RateLimitExceeded(Exception):  # noqa: N818 - public name used across the service
    """A request quota was exhausted."""


class SessionCapacityError(RateLimitExceeded):
    """The active-session ceiling is reached; no new durable session may be created."""
