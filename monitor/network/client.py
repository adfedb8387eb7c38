"""Public facade for watching one task's telemetry stream."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Union

from monitor.config import StreamSettings
from monitor.network.connection import ConnectionManager, TransportFactory
from monitor.network.handlers import Handler
from monitor.network.session_state import ConnectionState
from monitor.network.timer import ScopedTimer, TimerFactory
from shared.models.stream import LogEntry, ProgressSnapshot, StreamEvent, StreamFrame, TaskSummary
from shared.protocol import OpaquePayload

LOGGER = logging.getLogger(__name__)

StateHook = Callable[[ConnectionState], None]
ReconnectHook = Callable[[int, int], None]


@dataclass
class TaskStreamClient:
    """Read-only projections of the session plus connect/disconnect/clear_logs.

    Every client owns its own session, handler registry, reconnect timer and
    attempt counter; clients watching different tasks share nothing.
    """

    settings: StreamSettings
    transport_factory: TransportFactory
    timer_factory: TimerFactory = ScopedTimer

    manager: ConnectionManager = field(init=False, repr=False)
    _state_hooks: List[StateHook] = field(default_factory=list, init=False, repr=False)
    _reconnect_hooks: List[ReconnectHook] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.manager = ConnectionManager(
            self.settings,
            self.transport_factory,
            timer_factory=self.timer_factory,
            on_state_change=self._on_state_change,
            on_reconnect_scheduled=self._on_reconnect_scheduled,
        )

    @property
    def state(self) -> ConnectionState:
        return self.manager.session.connection_state

    @property
    def progress(self) -> Optional[ProgressSnapshot]:
        return self.manager.session.progress

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        return self.manager.session.logs.snapshot()

    @property
    def latest_frame(self) -> Optional[StreamFrame]:
        return self.manager.session.latest_frame

    @property
    def summary(self) -> Optional[TaskSummary]:
        return self.manager.session.summary

    @property
    def last_message(self) -> Optional[Union[StreamEvent, OpaquePayload]]:
        return self.manager.session.last_message

    @property
    def last_transition_at(self) -> datetime:
        return self.manager.session.last_transition_at

    @property
    def task_id(self) -> Optional[str]:
        target = self.manager.target
        return target.task_id if target else None

    @property
    def reconnect_attempts(self) -> int:
        return self.manager.reconnect_attempts

    @property
    def reconnect_pending(self) -> bool:
        return self.manager.reconnect_pending

    def connect(self, task_id: Optional[str] = None, url: Optional[str] = None) -> None:
        self.manager.connect(task_id=task_id, url=url)

    def disconnect(self) -> None:
        self.manager.disconnect()

    def clear_logs(self) -> None:
        self.manager.session.clear_logs()

    async def stop(self) -> None:
        await self.manager.stop()

    def subscribe(self, kind: str, handler: Handler) -> None:
        """Register ``handler`` for an event kind, or ``"message"`` for every inbound message."""

        self.manager.handlers.add(kind, handler)

    def unsubscribe(self, kind: str, handler: Handler) -> None:
        self.manager.handlers.remove(kind, handler)

    def handler_count(self, kind: str) -> int:
        return self.manager.handlers.count(kind)

    def add_state_hook(self, hook: StateHook) -> None:
        self._state_hooks.append(hook)

    def add_reconnect_hook(self, hook: ReconnectHook) -> None:
        """``hook(attempt, delay_ms)`` runs whenever a reconnect is scheduled."""

        self._reconnect_hooks.append(hook)

    def _on_state_change(self, state: ConnectionState) -> None:
        self._run_hooks(self._state_hooks, state)

    def _on_reconnect_scheduled(self, attempt: int, delay_ms: int) -> None:
        self._run_hooks(self._reconnect_hooks, attempt, delay_ms)

    @staticmethod
    def _run_hooks(hooks: List[Callable[..., Any]], *args: Any) -> None:
        for hook in list(hooks):
            try:
                hook(*args)
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress client hook error", exc_info=True)
