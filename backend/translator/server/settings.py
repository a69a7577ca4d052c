"""Translator server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import RawStringEnvSettingsSource, parse_string_list, parse_window

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class TranslatorServerSettings(BaseSettings):
    model_config = {"env_prefix": "TRANSLATOR_"}

    log_dir: str = "backend/logs/translator"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Shared store for durable sessions and the distributed rate limiter.
    # Unset: stateless session tokens and a per-process limiter.
    redis_url: str | None = None

    login_rate_limit: int = Field(default=10, ge=1)
    login_rate_window: str = "10 m"
    translate_rate_limit: int = Field(default=30, ge=1)
    translate_rate_window: str = "1 m"

    provider_base_url: str = "https://api.openai.com/v1"
    provider_model: str = Field(default="gpt-4o-mini", min_length=1)
    provider_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    provider_max_tokens: int = Field(default=4000, ge=1)
    provider_timeout_seconds: float = Field(default=120.0, gt=0)

    # Pause between demo-mode chunks to mimic a streaming provider.
    demo_chunk_delay: float = Field(default=0.05, ge=0.0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @property
    def login_window_seconds(self) -> int:
        return parse_window(self.login_rate_window)

    @property
    def translate_window_seconds(self) -> int:
        return parse_window(self.translate_rate_window)

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
