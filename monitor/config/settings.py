"""Telemetry client configuration loading and validation."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Literal, Optional

from pydantic import Field, NonNegativeInt, PositiveFloat, PositiveInt, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

CONFIG_FILE_ENV = "TASKSTREAM_CONFIG_FILE"

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/taskstream/monitor.yaml"),
    Path("/etc/taskstream/monitor.yml"),
    Path("./config/monitor.yaml"),
    Path("./config/monitor.yml"),
)


class StreamSettings(BaseSettings):
    """Validated settings for a task telemetry client."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="TASKSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Endpoint + target
    url: str = Field(
        default="ws://localhost:8000/ws/tasks",
        description="Telemetry stream endpoint, derived by the caller for the watched task.",
    )
    task_id: str | None = Field(
        default=None,
        description="Task identifier to subscribe to.",
    )
    transport: Literal["websocket", "synthetic"] = Field(
        default="websocket",
        description="Transport implementation injected at construction time.",
    )

    # Reliability
    reconnect_attempts: NonNegativeInt = Field(
        default=3,
        description="Automatic reconnect attempts allowed per connection lifecycle.",
    )
    reconnect_delay_ms: PositiveInt = Field(
        default=5000,
        description="Base delay (milliseconds); attempt n waits n times this value.",
    )
    heartbeat_interval_ms: PositiveInt | None = Field(
        default=None,
        description="Interval between keep-alive pings while connected; disabled when unset.",
    )
    open_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds to wait for the WebSocket opening handshake.",
    )

    # Synthetic generator (demo/testing)
    synthetic_open_delay_ms: NonNegativeInt = Field(
        default=1000,
        description="Simulated connection delay before the synthetic stream opens.",
    )
    synthetic_interval_ms: PositiveInt = Field(
        default=1000,
        description="Delay between synthetic progress ticks.",
    )
    synthetic_total_frames: PositiveInt = Field(
        default=10000,
        description="Frame count of the simulated video.",
    )
    synthetic_frame_every: NonNegativeInt = Field(
        default=5,
        description="Emit a frame snapshot every N ticks; 0 disables frames.",
    )
    synthetic_seed: int | None = Field(
        default=None,
        description="Seed for the synthetic generator; random when unset.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the monitor process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    config_path: Path | None = Field(
        default=None,
        description="YAML file the settings were seeded from, if any.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # explicit arguments win, then the YAML file, then the environment
        return (
            init_settings,
            MonitorConfigFileSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


def locate_config_file() -> Optional[Path]:
    """``TASKSTREAM_CONFIG_FILE`` when set, else the first default location on disk."""

    explicit = os.getenv(CONFIG_FILE_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return next((path for path in DEFAULT_CONFIG_LOCATIONS if path.is_file()), None)


class MonitorConfigFileSource(YamlConfigSettingsSource):
    """YAML settings source that records which file it read."""

    def __init__(self, settings_cls: type[BaseSettings]) -> None:
        self.config_path = locate_config_file()
        super().__init__(settings_cls, yaml_file=self.config_path)

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        data = super()._read_file(file_path)
        if not isinstance(data, dict):
            raise ValueError(f"Monitor config file {file_path} must contain a mapping at top level.")
        return data

    def __call__(self) -> Dict[str, Any]:
        data = dict(super().__call__())
        if data and self.config_path is not None:
            data.setdefault("config_path", self.config_path)
        return data


@lru_cache()
def get_settings() -> StreamSettings:
    """Return memoized monitor settings."""

    return StreamSettings()
