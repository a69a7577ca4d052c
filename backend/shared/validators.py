"""Shared parsing helpers for service settings."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

DEFAULT_WINDOW_SECONDS = 60

_WINDOW_PATTERN = re.compile(r"^(\d+)\s*([smhd])$", re.IGNORECASE)
_WINDOW_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list from environment variable or config value.

    Accepts:
    - A list of strings (returned as-is)
    - A JSON array string: '["a","b"]'
    - A comma-separated string: 'a,b'

    Raises ValueError for empty string values or malformed JSON.
    When allow_empty is False (default), also rejects empty lists.
    """
    if isinstance(value, list):
        if not allow_empty and not value:
            raise ValueError("String list value must not be empty")
        return value

    stripped = value.strip()
    if not stripped:
        if allow_empty:
            return []
        raise ValueError("String list value must not be empty")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        if not allow_empty and not parsed:
            raise ValueError("String list value must not be empty")
        return parsed

    result = [item.strip() for item in stripped.split(",") if item.strip()]
    if not allow_empty and not result:
        raise ValueError("String list value must not be empty")
    return result


def parse_string_mapping(value: str | dict[str, str]) -> dict[str, str]:
    """Parse a name -> value mapping.

    Accepts a dict, a JSON object string '{"a": "x"}', or 'a=x,b=y'.
    Values in the comma form may not contain commas; use JSON for those.
    """
    if isinstance(value, dict):
        return value

    stripped = value.strip()
    if not stripped:
        return {}

    if stripped.startswith("{"):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON object: {e}") from e
        if not isinstance(parsed, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in parsed.items()
        ):
            raise ValueError("JSON value must be an object of strings")
        return parsed

    result: dict[str, str] = {}
    for item in stripped.split(","):
        name, sep, secret = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected name=value, got {item.strip()!r}")
        result[name.strip()] = secret.strip()
    return result


def parse_window(window: str | int | float) -> int:
    """Parse a window like '10 m', '30s', '1h', '1d' into seconds.

    Bare numbers are seconds. Anything unparseable falls back to 60 seconds.
    """
    if isinstance(window, (int, float)) and not isinstance(window, bool):
        return int(window) if window > 0 else DEFAULT_WINDOW_SECONDS
    text = str(window).strip()
    if text.isdigit() and int(text) > 0:
        return int(text)
    match = _WINDOW_PATTERN.match(text)
    if not match:
        return DEFAULT_WINDOW_SECONDS
    return int(match.group(1)) * _WINDOW_UNITS[match.group(2).lower()]


_RAW_STRING_FIELDS = {"cors_origins", "users"}


class RawStringEnvSettingsSource(EnvSettingsSource):
    """Env settings source that passes list/dict fields as raw strings to validators.

    pydantic-settings tries to JSON-decode complex fields from env vars before
    validators run. This subclass bypasses that for the fields above so the
    validators can accept both JSON and the comma-separated forms.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _RAW_STRING_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
