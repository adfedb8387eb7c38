"""Derived per-task state maintained from the telemetry stream."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Iterator, Optional

from shared.models.stream import LogEntry, ProgressSnapshot, StreamFrame, TaskSummary

LOG_CAPACITY = 100


class ConnectionState(str, enum.Enum):
    """Client-side connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class LogBuffer:
    """Newest-first log retention bounded to ``capacity`` entries."""

    def __init__(self, capacity: int = LOG_CAPACITY) -> None:
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)

    def push(self, entry: LogEntry) -> None:
        # appendleft on a bounded deque discards from the right, i.e. the oldest entry
        self._entries.appendleft(entry)

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))


@dataclass
class TaskSession:
    """Mutable session state for one watched task.

    The connection manager owns the state machine; this object only mirrors the
    current state for readers.
    """

    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    progress: Optional[ProgressSnapshot] = None
    latest_frame: Optional[StreamFrame] = None
    summary: Optional[TaskSummary] = None
    last_message: Optional[Any] = None
    logs: LogBuffer = field(default_factory=LogBuffer)
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def record_message(self, message: Any) -> None:
        """Keep the latest inbound message, decoded event or opaque payload."""

        self.last_message = message

    def apply_progress(self, snapshot: ProgressSnapshot) -> None:
        self.progress = snapshot

    def append_log(self, entry: LogEntry) -> None:
        self.logs.push(entry)

    def apply_frame(self, frame: StreamFrame) -> None:
        self.latest_frame = frame

    def apply_complete(self, summary: Optional[TaskSummary] = None) -> None:
        if summary is not None:
            self.summary = summary

    def apply_connecting(self) -> None:
        self._mirror(ConnectionState.CONNECTING)

    def apply_connected(self) -> None:
        self._mirror(ConnectionState.CONNECTED)

    def apply_error(self) -> None:
        self._mirror(ConnectionState.ERROR)

    def apply_disconnected(self) -> None:
        self._mirror(ConnectionState.DISCONNECTED)

    def clear_logs(self) -> None:
        self.logs.clear()

    def reset(self) -> None:
        """Drop everything learned from the stream and mark the session disconnected."""

        self.progress = None
        self.latest_frame = None
        self.summary = None
        self.last_message = None
        self.logs.clear()
        self._mirror(ConnectionState.DISCONNECTED)

    def _mirror(self, state: ConnectionState) -> None:
        self.connection_state = state
        self.last_transition_at = datetime.now(tz=timezone.utc)
