"""Per-user cache of fully assembled translations."""

from __future__ import annotations

import hashlib

FINGERPRINT_LENGTH = 32


def fingerprint(content: str) -> str:
    """Fixed-length digest of page content. A cache key part, not a uniqueness guarantee."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def cache_key(user: str, content: str, target_language: str) -> str:
    return f"{user}:{fingerprint(content)}_{target_language}"


class TranslationCache:
    """In-process mapping of (user, content, language) to the last complete output.

    Entries never expire; the map is bounded only by clear() and restarts.
    Keys always include the user so one user's output is never served to
    another.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, user: str, content: str, target_language: str) -> str | None:
        return self._entries.get(cache_key(user, content, target_language))

    def put(self, user: str, content: str, target_language: str, text: str) -> None:
        self._entries[cache_key(user, content, target_language)] = text

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
