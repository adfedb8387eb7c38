"""Real-time telemetry client for AI video-analysis tasks."""

from monitor.network import ConnectionState, TaskStreamClient

__all__ = ["ConnectionState", "TaskStreamClient"]
