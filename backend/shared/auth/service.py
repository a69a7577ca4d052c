"""Auth service coordinating login, logout, and session resolution for the fixed roster."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog

from shared.auth.models import ClientInfo, LoginResult
from shared.auth.password import verify_password
from shared.errors import AuthError, InputValidationError, SessionCapacityError, SessionStoreError

if TYPE_CHECKING:
    from shared.auth.models import SessionRecord
    from shared.auth.session_store import SessionStore
    from shared.auth.settings import AuthSettings
    from shared.auth.vault import CredentialVault

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_SESSION = "Invalid or expired session"

logger = structlog.get_logger()


class LoginNotifier(Protocol):
    """Fire-and-forget login side channel. Must not block or raise."""

    def notify_login(self, username: str, client: ClientInfo) -> bool:
        """Schedule a notification. Return True if one was queued."""
        ...


class AuthService:
    """Verify roster credentials, issue sessions, and resolve bearer tokens."""

    def __init__(
        self,
        settings: AuthSettings,
        session_store: SessionStore,
        vault: CredentialVault,
        *,
        notifier: LoginNotifier | None = None,
    ) -> None:
        self._settings = settings
        self._session_store = session_store
        self._vault = vault
        self._notifier = notifier

    async def login(
        self,
        username: str,
        password: str,
        upstream_credential: str,
        *,
        client: ClientInfo | None = None,
    ) -> LoginResult:
        """Validate credentials and create a session carrying the encrypted upstream key.

        Raises InputValidationError for malformed input, AuthError for any
        credential mismatch (same message for unknown users), ConfigError when
        the app secret is missing, and SessionCapacityError when the durable
        store already holds max_active_sessions sessions.
        """
        credential = self._validate_login_input(username, password, upstream_credential)

        clean_username = username.strip().lower()
        configured = self._settings.users.get(clean_username)
        if configured is None:
            raise AuthError(INVALID_CREDENTIALS)
        if not await verify_password(password, configured, username=clean_username):
            raise AuthError(INVALID_CREDENTIALS)

        encrypted_credential = self._vault.encrypt(credential)

        # Not atomic with create(): concurrent logins can overshoot the cap by one.
        if self._session_store.enforces_session_cap:
            active = await self._session_store.count_active()
            if active >= self._settings.max_active_sessions:
                logger.info("login rejected", reason="session_cap", active=active)
                raise SessionCapacityError(
                    f"Maximum {self._settings.max_active_sessions} active users already logged in",
                )

        ttl = self._settings.session_ttl_seconds
        token = await self._session_store.create(clean_username, encrypted_credential, ttl)
        logger.info("login succeeded", username=clean_username)

        queued = self._queue_notification(clean_username, client or ClientInfo())
        return LoginResult(token=token, username=clean_username, expires_in=ttl, notification_queued=queued)

    async def logout(self, token: str) -> None:
        """Revoke a session. Never fails from the caller's perspective."""
        try:
            await self._session_store.revoke(token)
        except SessionStoreError:
            logger.warning("session revoke failed", exc_info=True)

    async def resolve(self, token: str | None) -> SessionRecord:
        """Return the session for a bearer token. Raises AuthError when absent or invalid."""
        if not token:
            raise AuthError(INVALID_SESSION)
        record = await self._session_store.resolve(token)
        if record is None:
            raise AuthError(INVALID_SESSION)
        return record

    async def identify(self, token: str | None) -> str:
        """Return the username owning a bearer token."""
        return (await self.resolve(token)).username

    # -- private helpers --

    def _validate_login_input(self, username: object, password: object, upstream_credential: object) -> str:
        """Check input shape and return the stripped upstream credential."""
        if not isinstance(username, str) or not isinstance(password, str) or not isinstance(upstream_credential, str):
            raise InputValidationError("Missing username, password, or upstreamCredential")
        if not username.strip() or not password or not upstream_credential.strip():
            raise InputValidationError("Missing username, password, or upstreamCredential")
        credential = upstream_credential.strip()
        prefix = self._settings.credential_prefix
        if not credential.startswith(prefix):
            raise InputValidationError(f"Upstream API key must start with {prefix}")
        return credential

    def _queue_notification(self, username: str, client: ClientInfo) -> bool:
        if self._notifier is None:
            return False
        try:
            return self._notifier.notify_login(username, client)
        except Exception:
            logger.warning("login notification dispatch failed", exc_info=True)
            return False
