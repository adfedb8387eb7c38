from .events import (
    EVENT_KINDS,
    CompleteEvent,
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    FrameEvent,
    LogEvent,
    ProgressEvent,
    StreamEvent,
)
from .frame import BoundingBox, Detection, RegionStat, StreamFrame
from .log import LogEntry, LogKind
from .progress import ProgressSnapshot
from .summary import TaskSummary

__all__ = [
    "EVENT_KINDS",
    "BoundingBox",
    "CompleteEvent",
    "ConnectedEvent",
    "Detection",
    "DisconnectedEvent",
    "ErrorEvent",
    "FrameEvent",
    "LogEntry",
    "LogEvent",
    "LogKind",
    "ProgressEvent",
    "ProgressSnapshot",
    "RegionStat",
    "StreamEvent",
    "StreamFrame",
    "TaskSummary",
]
