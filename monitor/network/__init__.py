"""Network stack (transport/connection/client) for task telemetry streams."""

from monitor.network.client import TaskStreamClient
from monitor.network.connection import ConnectionManager, TransportFactory
from monitor.network.handlers import GENERIC_KIND, HandlerRegistry
from monitor.network.reconnect import ReconnectPolicy
from monitor.network.session_state import LOG_CAPACITY, ConnectionState, LogBuffer, TaskSession
from monitor.network.timer import ScopedTimer
from monitor.network.transport.base import BaseTransport, StreamTarget, TransportClosed
from monitor.network.transport.synthetic import SyntheticTransport
from monitor.network.transport.websocket import WebSocketTransport

__all__ = [
    "GENERIC_KIND",
    "LOG_CAPACITY",
    "BaseTransport",
    "ConnectionManager",
    "ConnectionState",
    "HandlerRegistry",
    "LogBuffer",
    "ReconnectPolicy",
    "ScopedTimer",
    "StreamTarget",
    "SyntheticTransport",
    "TaskSession",
    "TaskStreamClient",
    "TransportClosed",
    "TransportFactory",
    "WebSocketTransport",
]
