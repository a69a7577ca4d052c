"""Auth settings: app secret, user roster, and session policy."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import RawStringEnvSettingsSource, parse_string_mapping

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class AuthSettings(BaseSettings):
    model_config = {"env_prefix": "AUTH_", "populate_by_name": True}

    # Server-wide secret for credential encryption and token signing.
    # Empty is allowed at startup; operations that need it raise ConfigError
    # so that /health keeps answering on a misconfigured deployment.
    app_secret: str = ""

    # Fixed roster: username -> bcrypt hash (preferred) or plaintext password.
    # AUTH_USERS='{"mara": "$2b$12$...", "baru": "$2b$12$..."}'
    users: dict[str, str] = {}

    session_ttl_seconds: int = Field(default=86400, ge=60)  # 24 hours
    max_active_sessions: int = Field(default=2, ge=1)

    # Upstream API credentials must start with this prefix.
    credential_prefix: str = Field(default="sk-", min_length=1)

    @field_validator("users", mode="before")
    @classmethod
    def validate_users(cls, v: str | dict[str, str]) -> dict[str, str]:
        return {name.strip().lower(): secret for name, secret in parse_string_mapping(v).items()}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, RawStringEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
