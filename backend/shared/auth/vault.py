"""AES-256-GCM encryption for the upstream API credential carried in a session.

The key is derived from the server-wide app secret with SHA-256, so rotating
the secret invalidates every stored credential.

Blob format: base64(nonce).base64(ciphertext).base64(tag)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from shared.errors import ConfigError, CryptoError

NONCE_BYTES = 12
TAG_BYTES = 16
_BLOB_PARTS = 3  # nonce.ciphertext.tag

_MISSING_SECRET = "Missing app secret. Set AUTH_APP_SECRET in the server environment."


def derive_key(secret: str) -> bytes:
    """Derive the 32-byte AES-256 / HMAC key from the app secret."""
    if not secret:
        raise ConfigError(_MISSING_SECRET)
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt_credential(plaintext: str, secret: str) -> str:
    """Encrypt with a fresh random nonce. Raises ConfigError when the secret is empty."""
    key = derive_key(secret)
    nonce = os.urandom(NONCE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return ".".join(_b64encode(part) for part in (nonce, ciphertext, tag))


def decrypt_credential(blob: str, secret: str) -> str:
    """Authenticate and decrypt a blob produced by encrypt_credential.

    Raises CryptoError for a malformed or tampered blob (or a different secret)
    and ConfigError when the secret is empty. Never returns partial plaintext.
    """
    key = derive_key(secret)
    parts = blob.split(".")
    if len(parts) != _BLOB_PARTS:
        raise CryptoError("Invalid encrypted credential format")

    nonce, ciphertext, tag = (_b64decode_canonical(part) for part in parts)
    if len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
        raise CryptoError("Invalid encrypted credential format")

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise CryptoError("Encrypted credential failed authentication") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:  # pragma: no cover - authenticated data is always ours
        raise CryptoError("Encrypted credential is not valid text") from e


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode_canonical(part: str) -> bytes:
    """Decode base64, rejecting anything that does not re-encode to the same text.

    Non-canonical encodings (altered padding bits) would otherwise decode to
    the same bytes, letting a mutated blob pass.
    """
    try:
        data = base64.b64decode(part, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError("Invalid encrypted credential encoding") from e
    if _b64encode(data) != part:
        raise CryptoError("Invalid encrypted credential encoding")
    return data


class CredentialVault:
    """Encrypt/decrypt upstream credentials with a fixed app secret."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def encrypt(self, plaintext: str) -> str:
        return encrypt_credential(plaintext, self._secret)

    def decrypt(self, blob: str) -> str:
        return decrypt_credential(blob, self._secret)
