"""Monitor bootstrap: transport selection and a blocking task watcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Type

from monitor.config import StreamSettings, get_settings
from monitor.network.client import TaskStreamClient
from monitor.network.connection import TransportFactory
from monitor.network.session_state import ConnectionState
from monitor.network.transport.base import BaseTransport, StreamTarget
from monitor.network.transport.synthetic import SyntheticTransport
from monitor.network.transport.websocket import WebSocketTransport
from shared.models.stream import CompleteEvent, ErrorEvent, LogEvent, ProgressEvent, TaskSummary

LOGGER = logging.getLogger(__name__)


def build_transport_factory(settings: StreamSettings) -> TransportFactory:
    """Pick the transport class once, from configuration."""

    resolved_cls: Type[BaseTransport]
    resolved_cls = WebSocketTransport if settings.transport == "websocket" else SyntheticTransport
    LOGGER.debug("Using %s for task streams", resolved_cls.__name__)

    def _factory(target: StreamTarget) -> BaseTransport:
        return resolved_cls(target, settings)  # type: ignore[call-arg]

    return _factory


def build_client(settings: Optional[StreamSettings] = None) -> TaskStreamClient:
    settings = settings or get_settings()
    return TaskStreamClient(settings=settings, transport_factory=build_transport_factory(settings))


async def watch(settings: Optional[StreamSettings] = None, *, task_id: Optional[str] = None) -> Optional[TaskSummary]:
    """Follow a task until it completes or the reconnect budget runs out.

    Returns the completion summary when the producer sent one.
    """

    client = build_client(settings)
    loop = asyncio.get_running_loop()
    finished = asyncio.Event()
    result: dict[str, Optional[TaskSummary]] = {"summary": None}

    def _on_progress(event: ProgressEvent) -> None:
        data = event.data
        LOGGER.info(
            "progress=%.1f%% frame=%s/%s fps=%.1f eta=%.0fs",
            data.progress,
            data.current_frame,
            data.total_frames,
            data.fps,
            data.eta_seconds,
        )

    def _on_log(event: LogEvent) -> None:
        LOGGER.info("[task %s] %s", event.data.kind.value, event.data.message)

    def _on_error(event: ErrorEvent) -> None:
        LOGGER.error("Task stream error: %s", event.error)

    def _on_complete(event: CompleteEvent) -> None:
        result["summary"] = event.summary
        finished.set()

    def _check_exhausted() -> None:
        if client.state is ConnectionState.DISCONNECTED and not client.reconnect_pending:
            finished.set()

    def _on_state(state: ConnectionState) -> None:
        if state is ConnectionState.DISCONNECTED:
            # reconnect scheduling happens right after the state flips
            loop.call_soon(_check_exhausted)

    def _on_reconnect(attempt: int, delay_ms: int) -> None:
        LOGGER.warning("Connection lost; reconnecting in %.0f seconds (attempt %s)", delay_ms / 1000, attempt)

    client.subscribe("progress", _on_progress)
    client.subscribe("log", _on_log)
    client.subscribe("error", _on_error)
    client.subscribe("complete", _on_complete)
    client.add_state_hook(_on_state)
    client.add_reconnect_hook(_on_reconnect)

    client.connect(task_id=task_id)
    try:
        await finished.wait()
    finally:
        await client.stop()
    return result["summary"]
