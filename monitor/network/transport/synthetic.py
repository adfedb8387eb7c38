"""In-process synthetic stream for demos and offline testing."""

from __future__ import annotations

import asyncio
import base64
import logging
import random
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from monitor.config import StreamSettings
from monitor.network.transport.base import BaseTransport, StreamTarget, TransportClosed, TransportNotReady
from shared.models.stream import (
    BoundingBox,
    CompleteEvent,
    Detection,
    FrameEvent,
    LogEntry,
    LogEvent,
    ProgressEvent,
    ProgressSnapshot,
    RegionStat,
    StreamFrame,
    TaskSummary,
)
from shared.protocol import RawPayload, encode_event

LOGGER = logging.getLogger(__name__)

LOG_MESSAGES = (
    "Processing frame batch...",
    "Object detection completed",
    "Saving checkpoint...",
    "Region analysis in progress",
    "Traffic flow calculated",
)
LOG_KINDS = ("info", "warning", "error", "success")
OBJECT_TYPES = ("bus", "car", "person", "truck")
REGIONS = (
    ("region-1", "Northbound lane", "counting"),
    ("region-2", "Southbound lane", "counting"),
    ("region-3", "Pedestrian crossing", "intrusion"),
)


class SyntheticTransport(BaseTransport):
    """Streams generated progress/log/frame events until the task completes.

    Auto-streams on open (no subscribe frame), then emits ``complete`` with a
    summary and closes. A seeded ``random.Random`` keeps runs reproducible.
    """

    def __init__(
        self,
        target: StreamTarget,
        settings: StreamSettings,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._target = target
        self._settings = settings
        self._rng = rng or random.Random(settings.synthetic_seed)
        self._pending: Deque[str] = deque()
        self._closed = asyncio.Event()
        self._opened = False
        self._finished = False
        self._ticks = 0
        self._progress = 0.0
        self._fps_total = 0.0
        self._peak_cpu = 0.0
        self._peak_memory = 0.0
        self._totals: Dict[str, int] = {label: 0 for label in OBJECT_TYPES}

    async def connect(self) -> None:
        if self._closed.is_set():
            raise TransportClosed("closed before open")
        delay = self._settings.synthetic_open_delay_ms / 1000.0
        if delay and await self._wait_closed(delay):
            raise TransportClosed("closed before open")
        self._opened = True
        LOGGER.info("Synthetic stream opened (task=%s)", self._target.task_id)

    async def send(self, message: dict[str, Any]) -> None:
        if not self._opened:
            raise TransportNotReady("Synthetic transport not connected")
        LOGGER.debug("Synthetic transport send(): %s", message)

    async def receive(self) -> RawPayload:
        if not self._opened:
            raise TransportNotReady("Synthetic transport not connected")
        if self._closed.is_set():
            raise TransportClosed("closed by client")
        if self._pending:
            return self._pending.popleft()
        if self._finished:
            raise TransportClosed("stream complete")
        if await self._wait_closed(self._settings.synthetic_interval_ms / 1000.0):
            raise TransportClosed("closed by client")
        self._tick()
        return self._pending.popleft()

    async def close(self) -> None:
        LOGGER.debug("Synthetic transport close() (task=%s)", self._target.task_id)
        self._closed.set()

    async def _wait_closed(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._closed.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _tick(self) -> None:
        rng = self._rng
        now = datetime.now(tz=timezone.utc)
        self._ticks += 1
        self._progress = min(self._progress + rng.random() * 2, 100.0)
        total_frames = self._settings.synthetic_total_frames
        current_frame = int(total_frames * self._progress / 100)
        cpu = 45 + rng.random() * 25
        memory = 60 + rng.random() * 20
        fps = 24 + rng.random() * 6
        self._fps_total += fps
        self._peak_cpu = max(self._peak_cpu, cpu)
        self._peak_memory = max(self._peak_memory, memory)
        for label in OBJECT_TYPES:
            self._totals[label] += rng.randint(0, 5)

        snapshot = ProgressSnapshot(
            task_id=self._target.task_id,
            progress=self._progress,
            current_frame=current_frame,
            total_frames=total_frames,
            fps=fps,
            eta_seconds=round((100 - self._progress) * 10),
            processing_speed=1.2 + rng.random() * 0.3,
            cpu_usage=cpu,
            memory_usage=memory,
            gpu_usage=70 + rng.random() * 20,
            detections=dict(self._totals),
            timestamp=now,
        )
        self._pending.append(encode_event(ProgressEvent(data=snapshot)))

        if rng.random() > 0.7:
            entry = LogEntry(
                id=f"{self._target.task_id}-log-{self._ticks}",
                kind=rng.choice(LOG_KINDS),
                message=rng.choice(LOG_MESSAGES),
                timestamp=now,
            )
            self._pending.append(encode_event(LogEvent(data=entry)))

        frame_every = self._settings.synthetic_frame_every
        if frame_every and self._ticks % frame_every == 0:
            self._pending.append(encode_event(FrameEvent(data=self._make_frame(current_frame, now))))

        if self._progress >= 100:
            self._finished = True
            self._pending.append(encode_event(CompleteEvent(task_id=self._target.task_id, summary=self._summary())))

    def _make_frame(self, frame_number: int, now: datetime) -> StreamFrame:
        rng = self._rng
        detections = [
            Detection(
                id=f"det-{frame_number}-{index}",
                type=rng.choice(OBJECT_TYPES),
                confidence=round(0.5 + rng.random() * 0.5, 3),
                bbox=BoundingBox(
                    x=rng.randint(0, 1800),
                    y=rng.randint(0, 1000),
                    width=rng.randint(20, 120),
                    height=rng.randint(20, 80),
                ),
            )
            for index in range(rng.randint(0, 6))
        ]
        regions = [
            RegionStat(id=region_id, name=name, kind=kind, count=rng.randint(0, 30), active=rng.random() > 0.2)
            for region_id, name, kind in REGIONS
        ]
        image = base64.b64encode(f"{self._target.task_id}:{frame_number}".encode("utf-8")).decode("ascii")
        return StreamFrame(
            task_id=self._target.task_id,
            frame_number=frame_number,
            timestamp=now,
            image_data=image,
            detections=detections,
            regions=regions,
        )

    def _summary(self) -> TaskSummary:
        return TaskSummary(
            total_frames_processed=self._settings.synthetic_total_frames,
            total_objects_detected=sum(self._totals.values()),
            processing_time_seconds=self._ticks * self._settings.synthetic_interval_ms / 1000.0,
            average_fps=self._fps_total / self._ticks if self._ticks else 0.0,
            detections_by_type=dict(self._totals),
            peak_memory_usage=self._peak_memory,
            peak_cpu_usage=self._peak_cpu,
        )
