"""Authentication utilities: credential vault, session stores, and the auth service."""

from shared.auth.models import ClientInfo, LoginResult, SessionRecord
from shared.auth.password import hash_password, verify_password
from shared.auth.service import AuthService, LoginNotifier
from shared.auth.session_store import RedisSessionStore, SessionStore, StatelessSessionStore, build_session_store
from shared.auth.settings import AuthSettings
from shared.auth.tokens import SessionClaims, create_session_token, verify_session_token
from shared.auth.vault import CredentialVault, decrypt_credential, encrypt_credential

__all__ = [
    "AuthService",
    "AuthSettings",
    "ClientInfo",
    "CredentialVault",
    "LoginNotifier",
    "LoginResult",
    "RedisSessionStore",
    "SessionClaims",
    "SessionRecord",
    "SessionStore",
    "StatelessSessionStore",
    "build_session_store",
    "create_session_token",
    "decrypt_credential",
    "encrypt_credential",
    "hash_password",
    "verify_password",
    "verify_session_token",
]
