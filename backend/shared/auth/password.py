"""Password checks against the configured per-user secret.

A configured value starting with ``$2`` is a bcrypt hash and is verified
off the event loop with anyio.to_thread.run_sync(), since bcrypt is
CPU-bound (~100ms per call).

Any other non-empty value is compared as plaintext. That degraded mode
exists for local setups and is logged once per user so it is not mistaken
for the hashed path.
"""

from __future__ import annotations

import hmac

import bcrypt
import structlog
from anyio import to_thread

logger = structlog.get_logger()

_BCRYPT_PREFIX = "$2"

_plaintext_warned: set[str] = set()


def is_bcrypt_hash(value: str) -> bool:
    return value.startswith(_BCRYPT_PREFIX)


async def hash_password(plain: str) -> str:
    """Produce a bcrypt hash suitable for AUTH_USERS."""
    encoded = plain.encode("utf-8")
    return await to_thread.run_sync(lambda: bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8"))


async def verify_password(plain: str, configured: str, *, username: str = "") -> bool:
    """Check a password against a bcrypt hash or, degraded, a plaintext value.

    An empty configured value never matches. Malformed hashes return False
    rather than propagating a ValueError.
    """
    if not configured:
        return False

    encoded_plain = plain.encode("utf-8")
    if is_bcrypt_hash(configured):
        encoded_hash = configured.encode("utf-8")
        try:
            return await to_thread.run_sync(lambda: bcrypt.checkpw(encoded_plain, encoded_hash))
        except ValueError:
            return False

    if username not in _plaintext_warned:
        _plaintext_warned.add(username)
        logger.warning("password configured in plaintext, using degraded comparison", username=username)
    return hmac.compare_digest(encoded_plain, configured.encode("utf-8"))
