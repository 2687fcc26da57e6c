"""Application settings loaded from environment variables and config files."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from hardsub.config import CONFIG_ROOT


class ChannelConfig(BaseModel):
    """Names of the four lifecycle channels emitted by the job backend."""

    progress: str = "encode-progress"
    log: str = "encode-log"
    complete: str = "encode-complete"
    error: str = "encode-error"

    model_config = ConfigDict(extra="forbid", frozen=True)

    def names(self) -> tuple[str, str, str, str]:
        return (self.progress, self.log, self.complete, self.error)


def _load_channels(channels_path: Path) -> ChannelConfig:
    if not channels_path.exists():
        return ChannelConfig()

    raw_data = yaml.safe_load(channels_path.read_text(encoding="utf-8")) or {}
    return ChannelConfig(**raw_data.get("channels", {}))


class Settings(BaseSettings):
    """Primary application settings for the hardsub CLI and services."""

    log_level: str = Field(default="INFO", alias="HARDSUB_LOG_LEVEL")
    log_tail_lines: PositiveInt = Field(default=20, alias="HARDSUB_LOG_TAIL_LINES")
    replay_timeout_seconds: PositiveFloat = Field(default=30.0, alias="HARDSUB_REPLAY_TIMEOUT")

    channels: ChannelConfig = Field(default_factory=lambda: _load_channels(CONFIG_ROOT / "channels.yaml"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def debug(self) -> bool:
        return self.log_level.upper() == "DEBUG"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()


__all__ = ["ChannelConfig", "Settings", "get_settings"]
