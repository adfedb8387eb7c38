from .stream import (
    OpaquePayload,
    RawPayload,
    build_heartbeat,
    build_subscribe,
    decode_event,
    encode_event,
)

__all__ = [
    "OpaquePayload",
    "RawPayload",
    "build_heartbeat",
    "build_subscribe",
    "decode_event",
    "encode_event",
]
