"""Configuration primitives for the task telemetry monitor."""

from .settings import StreamSettings, get_settings

__all__ = ["StreamSettings", "get_settings"]
