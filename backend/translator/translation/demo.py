"""Deterministic stand-in output for sessions without a usable upstream credential."""

from __future__ import annotations

import re

PREVIEW_CHARS = 100

_DEMO_TEMPLATE = """
**DEMO TRANSLATION** ({language})

**Simulated page translation**

This is a sample translation of a page from the PDF document.

**The original text was:**
"{preview}..."

**In production mode this would be a real translation from the language model.**

**To enable real translations:**
1. Get an API key from your provider
2. Log out
3. Log in again with the key in the API key field

**Features you can try in demo mode:**
- PDF loading and rendering
- Page text extraction
- Streaming responses
- Translation cache
- Page navigation
- Language switching

*The application is ready - it only needs an API key!*
"""

# Split after each space, keeping it, so the chunks join back to the exact text.
_CHUNK_BOUNDARY = re.compile(r"(?<= )")


def demo_translation(content: str, target_language: str) -> str:
    """Build the demo text for a page. Same input, same output."""
    return _DEMO_TEMPLATE.format(language=target_language.upper(), preview=content[:PREVIEW_CHARS])


def demo_chunks(text: str) -> list[str]:
    """Split demo text into word-sized chunks whose concatenation is the text."""
    return [chunk for chunk in _CHUNK_BOUNDARY.split(text) if chunk]
