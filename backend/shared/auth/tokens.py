"""HMAC-SHA256 signed session tokens for deployments without a shared store.

The token carries the whole session, so the server keeps no state and cannot
revoke a token before it expires.

Token format: base64url(json_payload).base64url(hmac_sha256(key, payload_segment))

Both segments are unpadded. The signature covers the encoded payload segment
itself, so any changed character invalidates the token.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import math
import time
from dataclasses import asdict, dataclass

import structlog

from shared.auth.vault import derive_key

logger = structlog.get_logger()

_TOKEN_PARTS = 2  # payload.signature


@dataclass
class SessionClaims:
    """Payload carried inside a signed session token."""

    username: str
    encrypted_credential: str
    exp: int


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _signature(payload_segment: str, secret: str) -> str:
    digest = hmac.new(derive_key(secret), payload_segment.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def create_session_token(username: str, encrypted_credential: str, ttl_seconds: int, secret: str) -> str:
    """Build a signed token expiring ttl_seconds from now. Raises ConfigError without a secret."""
    claims = SessionClaims(
        username=username,
        encrypted_credential=encrypted_credential,
        exp=int(time.time()) + ttl_seconds,
    )
    return sign_session_claims(claims, secret)


def sign_session_claims(claims: SessionClaims, secret: str) -> str:
    payload_segment = _b64url_encode(json.dumps(asdict(claims), sort_keys=True).encode("utf-8"))
    return f"{payload_segment}.{_signature(payload_segment, secret)}"


def verify_session_token(token: str, secret: str) -> SessionClaims | None:
    """Verify signature, payload shape, and expiry. Returns None on any failure."""
    parts = token.split(".")
    if len(parts) != _TOKEN_PARTS or not all(parts):
        return None
    payload_segment, provided_sig = parts

    try:
        payload_segment.encode("ascii")
        expected_sig = _signature(payload_segment, secret)
    except UnicodeEncodeError:
        return None

    if not hmac.compare_digest(provided_sig.encode("utf-8"), expected_sig.encode("ascii")):
        logger.debug("session token signature mismatch")
        return None

    try:
        data = json.loads(_b64url_decode(payload_segment))
    except (binascii.Error, ValueError):
        logger.debug("session token malformed payload")
        return None

    claims = _claims_from_payload(data)
    if claims is None:
        logger.debug("session token malformed payload")
        return None

    if claims.exp <= time.time():
        logger.debug("session token expired")
        return None

    return claims


def _claims_from_payload(data: object) -> SessionClaims | None:
    if not isinstance(data, dict):
        return None
    username = data.get("username")
    encrypted_credential = data.get("encrypted_credential")
    exp = data.get("exp")
    if not isinstance(username, str) or not isinstance(encrypted_credential, str):
        return None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not math.isfinite(exp):
        return None
    return SessionClaims(username=username, encrypted_credential=encrypted_credential, exp=int(exp))
