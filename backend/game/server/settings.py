"""Game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "GAME_", "populate_by_name": True}

    host: str = "0.0.0.0"  # noqa: S104
    # PaaS hosts hand out the listening port in a bare PORT variable
    port: int = Field(default=3000, ge=1, le=65535, validation_alias=AliasChoices("GAME_PORT", "PORT"))
    log_dir: str | None = Field(default=None, min_length=1)
    cors_origins: list[str] = ["*"]
    max_rooms: int = Field(default=1000, ge=1)
    room_id_length: int = Field(default=6, ge=4, le=12)
    min_players_to_start: int = Field(default=2, ge=2, le=4)
    rate_limit_per_second: float = Field(default=50.0, gt=0)
    rate_limit_burst: int = Field(default=80, ge=1)

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
