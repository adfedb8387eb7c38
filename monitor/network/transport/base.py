"""Transport abstractions for the task telemetry stream."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from shared.protocol import RawPayload


@dataclass(frozen=True)
class StreamTarget:
    """Endpoint and task a transport is opened for."""

    url: str
    task_id: str


class TransportClosed(Exception):
    """Raised by ``receive()`` once the channel has closed."""

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__(reason or "transport closed")
        self.reason = reason


class TransportNotReady(RuntimeError):
    """Raised when IO is attempted before ``connect()`` succeeded."""


class BaseTransport(ABC):
    """WebSocket-like channel driven by the connection manager.

    ``connect()`` returning is the open signal, each ``receive()`` result is a
    message, ``TransportClosed`` is the close signal and any other exception is
    an error signal followed by close.
    """

    requires_subscription: ClassVar[bool] = False

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def receive(self) -> RawPayload:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
