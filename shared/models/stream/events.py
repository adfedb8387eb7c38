"""Closed set of events carried on a task telemetry stream."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .frame import StreamFrame
from .log import LogEntry
from .progress import ProgressSnapshot
from .summary import TaskSummary


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConnectedEvent(_Event):
    type: Literal["connected"] = "connected"
    task_id: str = Field(alias="taskId")


class DisconnectedEvent(_Event):
    type: Literal["disconnected"] = "disconnected"
    task_id: str = Field(alias="taskId")
    reason: Optional[str] = None


class ProgressEvent(_Event):
    type: Literal["progress"] = "progress"
    data: ProgressSnapshot


class LogEvent(_Event):
    type: Literal["log"] = "log"
    data: LogEntry


class FrameEvent(_Event):
    type: Literal["frame"] = "frame"
    data: StreamFrame


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str
    code: Optional[str] = None


class CompleteEvent(_Event):
    type: Literal["complete"] = "complete"
    task_id: str = Field(alias="taskId")
    summary: Optional[TaskSummary] = None


StreamEvent = Annotated[
    Union[
        ConnectedEvent,
        DisconnectedEvent,
        ProgressEvent,
        LogEvent,
        FrameEvent,
        ErrorEvent,
        CompleteEvent,
    ],
    Field(discriminator="type"),
]

EVENT_KINDS: tuple[str, ...] = (
    "connected",
    "disconnected",
    "progress",
    "log",
    "frame",
    "error",
    "complete",
)
