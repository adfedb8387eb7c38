"""WebSocket transport implementation."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedOK

from monitor.config import StreamSettings
from monitor.network.transport.base import BaseTransport, StreamTarget, TransportClosed, TransportNotReady
from shared.protocol import RawPayload

LOGGER = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """Live network transport; the server expects an explicit subscribe frame."""

    requires_subscription = True

    def __init__(self, target: StreamTarget, settings: StreamSettings) -> None:
        self._target = target
        self._settings = settings
        self._ws: Optional[ClientConnection] = None

    async def connect(self) -> None:
        LOGGER.info("Connecting to task stream at %s (task=%s)", self._target.url, self._target.task_id)
        self._ws = await connect(self._target.url, open_timeout=self._settings.open_timeout_seconds)

    async def send(self, message: dict[str, Any]) -> None:
        if not self._ws:
            raise TransportNotReady("WebSocket transport not connected")
        payload = json.dumps(jsonable_encoder(message))
        LOGGER.debug("WebSocket send: %s", payload)
        await self._ws.send(payload)

    async def receive(self) -> RawPayload:
        if not self._ws:
            raise TransportNotReady("WebSocket transport not connected")
        try:
            raw = await self._ws.recv()
        except ConnectionClosedOK as exc:
            raise TransportClosed(exc.rcvd.reason if exc.rcvd else None) from exc
        LOGGER.debug("WebSocket receive: %s", raw)
        return raw

    async def close(self) -> None:
        if self._ws:
            LOGGER.info("Closing WebSocket transport (task=%s)", self._target.task_id)
            ws, self._ws = self._ws, None
            await ws.close()
