import asyncio

import pytest

from shared.models.stream import ProgressSnapshot
from shared.protocol import OpaquePayload

from monitor.config import StreamSettings
from monitor.network.connection import ConnectionManager
from monitor.network.session_state import ConnectionState
from monitor.tests.fakes import (
    ManualTimers,
    TransportRecorder,
    complete_payload,
    log_payload,
    progress_payload,
    wait_for,
)


def _settings(**overrides) -> StreamSettings:
    values = {
        "url": "ws://scheduler.test/ws/tasks/task-123",
        "task_id": "task-123",
        "reconnect_attempts": 3,
        "reconnect_delay_ms": 5000,
    }
    values.update(overrides)
    return StreamSettings(**values)


def _manager(recorder: TransportRecorder, timers: ManualTimers, states: list | None = None, **overrides) -> ConnectionManager:
    return ConnectionManager(
        _settings(**overrides),
        recorder,
        timer_factory=timers,
        on_state_change=states.append if states is not None else None,
    )


@pytest.mark.asyncio
async def test_connect_opens_transport_and_reaches_connected():
    recorder, timers, states = TransportRecorder(), ManualTimers(), []
    manager = _manager(recorder, timers, states)

    manager.connect()
    assert manager.state is ConnectionState.CONNECTING

    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    assert recorder.latest.target.url == "ws://scheduler.test/ws/tasks/task-123"
    assert recorder.latest.sent == []
    await manager.stop()


@pytest.mark.asyncio
async def test_subscribe_sent_when_transport_requires_it():
    recorder = TransportRecorder(requires_subscription=True)
    manager = _manager(recorder, ManualTimers())

    manager.connect()

    assert await wait_for(lambda: bool(recorder.latest.sent))
    assert recorder.latest.sent[0] == {"type": "subscribe", "taskId": "task-123"}
    await manager.stop()


@pytest.mark.asyncio
async def test_connect_is_noop_while_connecting_or_connected():
    recorder = TransportRecorder(auto_open=False)
    manager = _manager(recorder, ManualTimers())

    manager.connect()
    manager.connect()
    assert len(recorder.transports) == 1
    assert manager.state is ConnectionState.CONNECTING

    recorder.latest.open()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    manager.connect()

    assert len(recorder.transports) == 1
    assert manager.state is ConnectionState.CONNECTED
    await manager.stop()


@pytest.mark.asyncio
async def test_connect_without_task_id_is_rejected():
    manager = ConnectionManager(StreamSettings(task_id=None), TransportRecorder(), timer_factory=ManualTimers())

    with pytest.raises(ValueError):
        manager.connect()


@pytest.mark.asyncio
async def test_progress_snapshot_is_replaced_not_merged():
    recorder = TransportRecorder()
    manager = _manager(recorder, ManualTimers())
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)

    first = progress_payload(25.5)
    recorder.latest.push_event(first)
    assert await wait_for(lambda: manager.session.progress is not None)
    assert manager.session.progress == ProgressSnapshot.model_validate(first["data"])

    second = progress_payload(50.0, currentFrame=5000, detections={"car": 2468})
    recorder.latest.push_event(second)
    assert await wait_for(lambda: manager.session.progress.progress == 50.0)

    snapshot = manager.session.progress
    assert snapshot == ProgressSnapshot.model_validate(second["data"])
    assert snapshot.detections == {"car": 2468}
    assert snapshot.current_frame == 5000
    await manager.stop()


@pytest.mark.asyncio
async def test_logs_frames_and_summary_are_applied_in_order():
    recorder = TransportRecorder()
    manager = _manager(recorder, ManualTimers())
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)

    for index in range(1, 106):
        recorder.latest.push_event(log_payload(f"log-{index}"))
    recorder.latest.push_event(complete_payload())
    assert await wait_for(lambda: manager.session.summary is not None)

    ids = [entry.id for entry in manager.session.logs]
    assert len(ids) == 100
    assert ids[0] == "log-105" and ids[-1] == "log-6"
    assert manager.session.summary.total_objects_detected == 4523
    assert manager.state is ConnectionState.CONNECTED
    await manager.stop()


@pytest.mark.asyncio
async def test_error_then_close_schedules_linear_backoff_until_budget_exhausted():
    recorder = TransportRecorder(fail_connect=OSError("connection refused"))
    timers, states = ManualTimers(), []
    manager = _manager(recorder, timers, states)

    manager.connect()
    for expected in (1, 2, 3):
        assert await wait_for(lambda: len(timers.timers) == expected)
        assert manager.state is ConnectionState.DISCONNECTED
        assert manager.reconnect_pending
        timers.latest.fire()

    assert await wait_for(lambda: states.count(ConnectionState.DISCONNECTED) == 4)
    await asyncio.sleep(0.02)

    assert timers.delays == [5.0, 10.0, 15.0]
    assert len(recorder.transports) == 4
    assert manager.state is ConnectionState.DISCONNECTED
    assert not manager.reconnect_pending
    assert manager.reconnect_attempts == 3
    assert states[:3] == [ConnectionState.CONNECTING, ConnectionState.ERROR, ConnectionState.DISCONNECTED]
    await manager.stop()


@pytest.mark.asyncio
async def test_transport_error_while_connected_goes_through_error_state():
    recorder, timers, states = TransportRecorder(), ManualTimers(), []
    manager = _manager(recorder, timers, states)
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    recorder.latest.push_event(progress_payload(10.0))

    recorder.latest.fail(ConnectionResetError("reset by peer"))

    assert await wait_for(lambda: len(timers.timers) == 1)
    assert states[-2:] == [ConnectionState.ERROR, ConnectionState.DISCONNECTED]
    assert recorder.transports[0].closed
    # last-known values stay visible after an abnormal close
    assert manager.session.progress is not None
    assert manager.session.progress.progress == 10.0
    await manager.stop()


@pytest.mark.asyncio
async def test_attempt_counter_resets_after_successful_reconnect():
    recorder = TransportRecorder()
    timers = ManualTimers()
    manager = _manager(recorder, timers)
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)

    recorder.latest.close_remote()
    assert await wait_for(lambda: len(timers.timers) == 1)
    assert manager.reconnect_attempts == 1
    timers.latest.fire()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    assert manager.reconnect_attempts == 0

    recorder.latest.close_remote()
    assert await wait_for(lambda: len(timers.timers) == 2)

    assert timers.delays == [5.0, 5.0]
    assert len(recorder.transports) == 2
    await manager.stop()


@pytest.mark.asyncio
async def test_disconnect_cancels_pending_reconnect():
    recorder, timers = TransportRecorder(), ManualTimers()
    manager = _manager(recorder, timers)
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    recorder.latest.close_remote()
    assert await wait_for(lambda: len(timers.timers) == 1)

    manager.disconnect()
    timers.latest.fire()
    await asyncio.sleep(0.02)

    assert timers.latest.cancelled
    assert len(recorder.transports) == 1
    assert manager.state is ConnectionState.DISCONNECTED
    assert manager.reconnect_attempts == 0


@pytest.mark.asyncio
async def test_disconnect_closes_transport_resets_session_and_never_reconnects():
    recorder, timers = TransportRecorder(), ManualTimers()
    manager = _manager(recorder, timers)
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    recorder.latest.push_event(progress_payload())
    recorder.latest.push_event(log_payload("log-1"))
    assert await wait_for(lambda: len(manager.session.logs) == 1)

    await manager.stop()
    old = recorder.latest
    old.push_event(progress_payload(99.0))
    await asyncio.sleep(0.02)

    assert old.closed
    assert timers.timers == []
    assert manager.state is ConnectionState.DISCONNECTED
    assert manager.session.progress is None
    assert len(manager.session.logs) == 0


@pytest.mark.asyncio
async def test_connect_to_other_task_resets_session():
    recorder = TransportRecorder()
    manager = _manager(recorder, ManualTimers())
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    recorder.latest.push_event(progress_payload())
    assert await wait_for(lambda: manager.session.progress is not None)

    manager.connect(task_id="task-456", url="ws://scheduler.test/ws/tasks/task-456")

    assert manager.session.progress is None
    assert manager.state is ConnectionState.CONNECTING
    assert len(recorder.transports) == 2
    assert recorder.latest.target.task_id == "task-456"
    assert await wait_for(lambda: recorder.transports[0].closed)
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    await manager.stop()


@pytest.mark.asyncio
async def test_opaque_payload_reaches_generic_handlers_only():
    recorder = TransportRecorder()
    manager = _manager(recorder, ManualTimers())
    generic, typed = [], []
    manager.handlers.add("message", generic.append)
    manager.handlers.add("progress", typed.append)
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)

    recorder.latest.push("not-json")
    assert await wait_for(lambda: len(generic) == 1)

    assert isinstance(generic[0], OpaquePayload)
    assert generic[0].raw == "not-json"
    assert typed == []
    assert manager.state is ConnectionState.CONNECTED

    recorder.latest.push_event(progress_payload())
    assert await wait_for(lambda: len(generic) == 2)
    assert len(typed) == 1
    await manager.stop()


@pytest.mark.asyncio
async def test_heartbeat_pings_while_connected():
    recorder = TransportRecorder()
    manager = _manager(recorder, ManualTimers(), heartbeat_interval_ms=10)
    manager.connect()

    assert await wait_for(lambda: any(msg["type"] == "ping" for msg in recorder.latest.sent))
    ping = next(msg for msg in recorder.latest.sent if msg["type"] == "ping")
    assert ping["taskId"] == "task-123"

    await manager.stop()
    sent = len(recorder.latest.sent)
    await asyncio.sleep(0.05)
    assert len(recorder.latest.sent) == sent


@pytest.mark.asyncio
async def test_deeply_nested_payload_does_not_drop_the_connection():
    recorder, timers, states = TransportRecorder(), ManualTimers(), []
    manager = _manager(recorder, timers, states)
    generic = []
    manager.handlers.add("message", generic.append)
    manager.connect()
    assert await wait_for(lambda: manager.state is ConnectionState.CONNECTED)

    recorder.latest.push("[" * 200000)
    recorder.latest.push_event(progress_payload(60.0))

    assert await wait_for(lambda: manager.session.progress is not None)
    assert isinstance(generic[0], OpaquePayload)
    assert manager.state is ConnectionState.CONNECTED
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    assert timers.timers == []
    assert not recorder.latest.closed
    assert len(recorder.transports) == 1
    await manager.stop()
