"""Session models for authentication."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionRecord:
    """What a session token resolves to."""

    username: str
    encrypted_credential: str  # CredentialVault blob, never the plaintext key


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata attached to a login for the notification side channel."""

    ip: str = "unknown"
    user_agent: str = "unknown"
    host: str = "unknown"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login."""

    token: str
    username: str
    expires_in: int  # seconds
    notification_queued: bool = False
