from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class TaskSummary(BaseModel):
    """Terminal statistics delivered once when a task stream completes."""

    model_config = ConfigDict(populate_by_name=True)

    total_frames_processed: int = Field(alias="totalFramesProcessed")
    total_objects_detected: int = Field(alias="totalObjectsDetected")
    processing_time_seconds: float = Field(alias="processingTime")
    average_fps: float = Field(alias="averageFps")
    detections_by_type: Dict[str, int] = Field(default_factory=dict, alias="detectionsByType")
    peak_memory_usage: float = Field(alias="peakMemoryUsage")
    peak_cpu_usage: float = Field(alias="peakCpuUsage")
