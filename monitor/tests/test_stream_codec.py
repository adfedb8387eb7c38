import json

from shared.models.stream import (
    CompleteEvent,
    ErrorEvent,
    FrameEvent,
    LogEvent,
    LogKind,
    ProgressEvent,
)
from shared.protocol import OpaquePayload, build_heartbeat, build_subscribe, decode_event, encode_event

from monitor.tests.fakes import complete_payload, frame_payload, log_payload, progress_payload


def test_decode_progress_maps_wire_fields():
    event = decode_event(json.dumps(progress_payload(25.5)))

    assert isinstance(event, ProgressEvent)
    assert event.data.task_id == "task-123"
    assert event.data.progress == 25.5
    assert event.data.eta_seconds == 315
    assert event.data.detections["car"] == 1234


def test_decode_does_not_clamp_out_of_range_progress():
    event = decode_event(json.dumps(progress_payload(140.0, cpuUsage=-3)))

    assert isinstance(event, ProgressEvent)
    assert event.data.progress == 140.0
    assert event.data.cpu_usage == -3


def test_decode_log_frame_complete_and_error():
    log = decode_event(json.dumps(log_payload("log-1", kind="warning")))
    frame = decode_event(json.dumps(frame_payload(7)))
    complete = decode_event(json.dumps(complete_payload()))
    error = decode_event(json.dumps({"type": "error", "error": "model crashed", "code": "E_MODEL"}))

    assert isinstance(log, LogEvent) and log.data.kind is LogKind.warning
    assert isinstance(frame, FrameEvent)
    assert frame.data.frame_number == 7
    assert frame.data.regions[0].kind == "counting"
    assert frame.data.detections[0].bbox.width == 80
    assert isinstance(complete, CompleteEvent)
    assert complete.summary is not None and complete.summary.processing_time_seconds == 420
    assert isinstance(error, ErrorEvent) and error.code == "E_MODEL"


def test_complete_without_summary_is_valid():
    event = decode_event(json.dumps(complete_payload(with_summary=False)))

    assert isinstance(event, CompleteEvent)
    assert event.summary is None


def test_malformed_payload_becomes_opaque():
    result = decode_event("not-json")

    assert isinstance(result, OpaquePayload)
    assert result.raw == "not-json"
    assert result.reason.startswith("invalid json")


def test_undecodable_bytes_become_opaque():
    raw = b"\xff\xfe\x00"

    result = decode_event(raw)

    assert isinstance(result, OpaquePayload)
    assert result.raw is raw


def test_unknown_kind_and_non_object_json_become_opaque():
    unknown = decode_event(json.dumps({"type": "status", "progress": 10}))
    scalar = decode_event("1")

    assert isinstance(unknown, OpaquePayload)
    assert unknown.reason.startswith("unrecognised event")
    assert isinstance(scalar, OpaquePayload)
    assert scalar.raw == "1"


def test_encode_event_uses_wire_names():
    event = decode_event(json.dumps(progress_payload(50.0)))
    assert isinstance(event, ProgressEvent)

    wire = json.loads(encode_event(event))

    assert wire["type"] == "progress"
    assert wire["data"]["taskId"] == "task-123"
    assert wire["data"]["eta"] == 315
    assert "eta_seconds" not in wire["data"]


def test_outbound_control_frames():
    assert build_subscribe("task-9") == {"type": "subscribe", "taskId": "task-9"}
    ping = build_heartbeat("task-9")
    assert ping["type"] == "ping"
    assert ping["taskId"] == "task-9"
    assert "ts" in ping


def test_deeply_nested_payload_becomes_opaque():
    raw = "[" * 200000

    result = decode_event(raw)

    assert isinstance(result, OpaquePayload)
    assert result.raw is raw
    assert result.reason.startswith("invalid json")
