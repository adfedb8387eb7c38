"""Connection manager that owns the telemetry transport lifecycle.

One manager drives at most one live transport for one task at a time. All
lifecycle signals (open, message, error, close) are handled synchronously on
the event loop, so session state needs no locking.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Set

from monitor.config import StreamSettings
from monitor.network.handlers import HandlerRegistry
from monitor.network.reconnect import ReconnectPolicy
from monitor.network.session_state import ConnectionState, TaskSession
from monitor.network.timer import ScopedTimer, Timer, TimerFactory
from monitor.network.transport.base import BaseTransport, StreamTarget, TransportClosed
from shared.models.stream import (
    CompleteEvent,
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    FrameEvent,
    LogEvent,
    ProgressEvent,
    StreamEvent,
)
from shared.protocol import OpaquePayload, RawPayload, build_heartbeat, build_subscribe, decode_event

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[StreamTarget], BaseTransport]

_ALLOWED_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.ERROR, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.ERROR, ConnectionState.DISCONNECTED},
    ConnectionState.ERROR: {ConnectionState.DISCONNECTED},
}


class ConnectionManager:
    """Connects to a task stream, applies its events and reconnects on abnormal close."""

    def __init__(
        self,
        settings: StreamSettings,
        transport_factory: TransportFactory,
        *,
        session: Optional[TaskSession] = None,
        handlers: Optional[HandlerRegistry] = None,
        policy: Optional[ReconnectPolicy] = None,
        timer_factory: TimerFactory = ScopedTimer,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
        on_reconnect_scheduled: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        self._settings = settings
        self._transport_factory = transport_factory
        self.session = session or TaskSession()
        self.handlers = handlers or HandlerRegistry()
        self._policy = policy or ReconnectPolicy(
            max_attempts=settings.reconnect_attempts,
            base_delay_ms=settings.reconnect_delay_ms,
        )
        self._timer_factory = timer_factory
        self._on_state_change = on_state_change
        self._on_reconnect_scheduled = on_reconnect_scheduled
        self._heartbeat_interval: Optional[float] = (
            settings.heartbeat_interval_ms / 1000.0 if settings.heartbeat_interval_ms else None
        )
        self._target: Optional[StreamTarget] = (
            StreamTarget(url=settings.url, task_id=settings.task_id) if settings.task_id else None
        )
        self._transport: Optional[BaseTransport] = None
        self._run_task: Optional[asyncio.Task[None]] = None
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._reconnect_timer: Optional[Timer] = None
        self._attempts = 0
        self._closing: Set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> ConnectionState:
        return self.session.connection_state

    @property
    def target(self) -> Optional[StreamTarget]:
        return self._target

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None and self._reconnect_timer.active

    def connect(self, task_id: Optional[str] = None, url: Optional[str] = None) -> None:
        """Open a transport for the task unless one is already live.

        Switching to a different task (or endpoint) tears the current session
        down first, exactly like ``disconnect()``.
        """

        target = self._resolve_target(task_id, url)
        if self._target is not None and target != self._target:
            LOGGER.info("Switching task stream %s → %s", self._target.task_id, target.task_id)
            self.disconnect()
        self._target = target
        if self._transport is not None:
            LOGGER.debug("connect() ignored; transport already live (task=%s state=%s)", target.task_id, self.state.value)
            return
        self._cancel_reconnect()
        self._open()

    def disconnect(self) -> None:
        """Cancel any pending reconnect, close the live transport and reset the session."""

        self._cancel_reconnect()
        self._stop_heartbeat()
        transport, task = self._transport, self._run_task
        self._transport = None
        self._run_task = None
        if task is not None and not task.done():
            task.cancel()
            self._track(task)
        if transport is not None:
            self._track(asyncio.get_running_loop().create_task(self._close_quietly(transport)))
            LOGGER.info("Disconnected from task stream (task=%s)", self._target.task_id if self._target else None)
        self._attempts = 0
        self.session.reset()
        self._notify(self._on_state_change, ConnectionState.DISCONNECTED)

    async def stop(self) -> None:
        """Teardown: disconnect and wait for the run loop and transport closes to settle."""

        self.disconnect()
        current = asyncio.current_task()
        pending = [task for task in self._closing if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _resolve_target(self, task_id: Optional[str], url: Optional[str]) -> StreamTarget:
        current = self._target
        task = task_id or (current.task_id if current else None)
        if not task:
            raise ValueError("connect() requires a task id (argument or settings.task_id)")
        if url is None:
            url = current.url if current is not None and current.task_id == task else self._settings.url
        return StreamTarget(url=url, task_id=task)

    def _open(self) -> None:
        assert self._target is not None
        loop = asyncio.get_running_loop()
        target = self._target
        transport = self._transport_factory(target)
        self._transport = transport
        self._transition(ConnectionState.CONNECTING)
        self._run_task = loop.create_task(self._run(transport, target), name=f"taskstream-{target.task_id}")

    async def _run(self, transport: BaseTransport, target: StreamTarget) -> None:
        reason: Optional[str] = None
        try:
            await transport.connect()
            self._handle_open(transport)
            if transport.requires_subscription:
                await transport.send(build_subscribe(target.task_id))
            while True:
                raw = await transport.receive()
                self._handle_message(transport, raw)
        except TransportClosed as exc:
            reason = exc.reason
        except Exception as exc:  # noqa: BLE001
            self._handle_error(transport, exc)
            reason = str(exc) or type(exc).__name__
        await self._close_quietly(transport)
        self._handle_close(transport, reason)

    def _handle_open(self, transport: BaseTransport) -> None:
        if transport is not self._transport:
            return
        assert self._target is not None
        self._attempts = 0
        self._cancel_reconnect()
        self._transition(ConnectionState.CONNECTED)
        LOGGER.info("Task stream connected (task=%s)", self._target.task_id)
        if self._heartbeat_interval:
            self._heartbeat_task = asyncio.get_running_loop().create_task(
                self._heartbeat_loop(transport, self._target.task_id),
                name=f"taskstream-heartbeat-{self._target.task_id}",
            )

    def _handle_message(self, transport: BaseTransport, raw: RawPayload) -> None:
        if transport is not self._transport:
            return
        message = decode_event(raw)
        self.session.record_message(message)
        if isinstance(message, OpaquePayload):
            LOGGER.debug("Forwarding opaque payload (%s)", message.reason)
        else:
            self._apply_event(message)
        self.handlers.dispatch(message)

    def _apply_event(self, event: StreamEvent) -> None:
        if isinstance(event, ProgressEvent):
            self.session.apply_progress(event.data)
        elif isinstance(event, LogEvent):
            self.session.append_log(event.data)
        elif isinstance(event, FrameEvent):
            self.session.apply_frame(event.data)
        elif isinstance(event, CompleteEvent):
            LOGGER.info("Task %s completed", event.task_id)
            self.session.apply_complete(event.summary)
        elif isinstance(event, ErrorEvent):
            LOGGER.warning("Task stream reported error: %s (code=%s)", event.error, event.code)
        elif isinstance(event, (ConnectedEvent, DisconnectedEvent)):
            # producer announcements; connection state follows the transport only
            LOGGER.debug("Producer announced %s for task %s", event.type, event.task_id)
        else:
            raise TypeError(f"Unhandled stream event {event!r}")

    def _handle_error(self, transport: BaseTransport, exc: Exception) -> None:
        if transport is not self._transport:
            return
        LOGGER.warning("Task stream transport error (task=%s): %s", self._target.task_id if self._target else None, exc)
        self._transition(ConnectionState.ERROR)

    def _handle_close(self, transport: BaseTransport, reason: Optional[str]) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        self._run_task = None
        self._stop_heartbeat()
        LOGGER.info("Task stream closed (task=%s): %s", self._target.task_id if self._target else None, reason)
        self._transition(ConnectionState.DISCONNECTED)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        attempt = self._attempts + 1
        if not self._policy.allows(attempt):
            LOGGER.warning(
                "Reconnect budget exhausted after %s attempt(s) (task=%s)",
                self._attempts,
                self._target.task_id if self._target else None,
            )
            return
        self._attempts = attempt
        delay_ms = self._policy.delay_ms(attempt)
        LOGGER.info(
            "Reconnecting in %.1fs (attempt %s/%s)",
            delay_ms / 1000.0,
            attempt,
            self._policy.max_attempts,
        )
        self._reconnect_timer = self._timer_factory(delay_ms / 1000.0, self._on_reconnect_due)
        self._notify(self._on_reconnect_scheduled, attempt, delay_ms)

    def _on_reconnect_due(self) -> None:
        self._reconnect_timer = None
        if self._transport is not None or self._target is None:
            return
        try:
            self._open()
        except Exception:  # noqa: BLE001
            LOGGER.exception("Reconnect attempt %s could not start", self._attempts)
            self._schedule_reconnect()

    def _cancel_reconnect(self) -> None:
        timer, self._reconnect_timer = self._reconnect_timer, None
        if timer is not None:
            timer.cancel()

    async def _heartbeat_loop(self, transport: BaseTransport, task_id: str) -> None:
        assert self._heartbeat_interval is not None
        while transport is self._transport:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                await transport.send(build_heartbeat(task_id))
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Heartbeat send failed (task=%s): %s", task_id, exc)
                return

    def _stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
            self._track(task)

    def _transition(self, next_state: ConnectionState) -> None:
        current = self.session.connection_state
        if next_state not in _ALLOWED_TRANSITIONS[current]:
            raise ValueError(f"Invalid transition {current.value} → {next_state.value}")
        if next_state is ConnectionState.CONNECTING:
            self.session.apply_connecting()
        elif next_state is ConnectionState.CONNECTED:
            self.session.apply_connected()
        elif next_state is ConnectionState.ERROR:
            self.session.apply_error()
        else:
            self.session.apply_disconnected()
        self._notify(self._on_state_change, next_state)

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    @staticmethod
    async def _close_quietly(transport: BaseTransport) -> None:
        try:
            await transport.close()
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress transport close error", exc_info=True)

    @staticmethod
    def _notify(callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress connection callback error", exc_info=True)
