from __future__ import annotations

from datetime import datetime
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class ProgressSnapshot(BaseModel):
    """Point-in-time processing progress reported for a running task."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    progress: float
    current_frame: int = Field(alias="currentFrame")
    total_frames: int = Field(alias="totalFrames")
    fps: float
    eta_seconds: float = Field(alias="eta")
    processing_speed: float = Field(alias="processingSpeed")
    cpu_usage: float = Field(alias="cpuUsage")
    memory_usage: float = Field(alias="memoryUsage")
    gpu_usage: float = Field(alias="gpuUsage")
    detections: Dict[str, int] = Field(default_factory=dict)
    timestamp: datetime
