"""Transport implementations for the task telemetry stream."""

from .base import BaseTransport, StreamTarget, TransportClosed, TransportNotReady
from .synthetic import SyntheticTransport
from .websocket import WebSocketTransport

__all__ = [
    "BaseTransport",
    "StreamTarget",
    "SyntheticTransport",
    "TransportClosed",
    "TransportNotReady",
    "WebSocketTransport",
]
