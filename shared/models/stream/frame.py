from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float


class Detection(BaseModel):
    """Object detected on a streamed frame."""

    id: str
    type: str
    confidence: float
    bbox: BoundingBox
    attributes: Optional[Dict[str, Any]] = None


class RegionStat(BaseModel):
    """Per-region counter attached to a streamed frame."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    kind: str = Field(alias="type")
    count: int
    active: bool


class StreamFrame(BaseModel):
    """Latest annotated video frame for a task."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    frame_number: int = Field(alias="frameNumber")
    timestamp: datetime
    image_data: str = Field(alias="imageData")
    detections: List[Detection] = Field(default_factory=list)
    regions: List[RegionStat] = Field(default_factory=list)
