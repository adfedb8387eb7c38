"""Helpers for decoding/encoding task telemetry stream frames."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import TypeAdapter, ValidationError

from shared.models.stream import StreamEvent

LOGGER = logging.getLogger(__name__)

RawPayload = Union[str, bytes]

_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


@dataclass(frozen=True)
class OpaquePayload:
    """Inbound payload that could not be decoded into a stream event.

    ``raw`` is kept verbatim so nothing the producer sent is lost; no structural
    guarantees apply to it.
    """

    raw: Any
    reason: str


def decode_event(raw: RawPayload) -> Union[StreamEvent, OpaquePayload]:
    """Decode a raw transport payload; never raises for malformed input."""

    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        data = json.loads(text)
    except (ValueError, TypeError, RecursionError) as exc:
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        LOGGER.debug("Undecodable stream payload %r: %s", raw, exc)
        return OpaquePayload(raw=raw, reason=f"invalid json: {exc}")
    try:
        return _EVENT_ADAPTER.validate_python(data)
    except ValidationError as exc:
        LOGGER.debug("Unrecognised stream payload %r: %s", raw, exc)
        return OpaquePayload(raw=raw, reason=f"unrecognised event: {exc.error_count()} error(s)")
    except RecursionError:
        LOGGER.debug("Stream payload nested too deeply to validate")
        return OpaquePayload(raw=raw, reason="unrecognised event: nesting too deep")


def encode_event(event: StreamEvent) -> str:
    """Serialise an event to the camelCase JSON text used on the wire."""

    return event.model_dump_json(by_alias=True, exclude_none=True)


def build_subscribe(task_id: str) -> Dict[str, Any]:
    """Initial handshake identifying the task to stream."""

    return {"type": "subscribe", "taskId": task_id}


def build_heartbeat(task_id: str, *, ts: Optional[datetime] = None) -> Dict[str, Any]:
    """Keep-alive frame sent while connected."""

    return {
        "type": "ping",
        "taskId": task_id,
        "ts": (ts or datetime.now(timezone.utc)).isoformat(),
    }
