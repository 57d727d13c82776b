"""Coordinator server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class CoordinatorSettings(BaseSettings):
    model_config = {"env_prefix": "COORDINATOR_"}

    max_players: int = Field(default=8, ge=1, le=64)
    room_ttl_seconds: int = Field(default=86400, ge=60)  # 24 hours default, min 60s
    sweep_interval_seconds: float = Field(default=300, ge=0)  # 0 disables the sweep
    heartbeat_timeout_seconds: float = Field(default=150, gt=0)
    heartbeat_check_interval_seconds: float = Field(default=5, gt=0)
    chat_history_size: int = Field(default=50, ge=0)
    public_listing_limit: int = Field(default=50, ge=1)
    log_dir: str = Field(default="backend/logs/coordinator", min_length=1)
    cors_origins: list[str] = ["http://localhost:3000"]
    ws_allowed_origin: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
