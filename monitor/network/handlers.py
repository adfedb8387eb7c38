"""Per-client registry routing decoded stream messages to callbacks."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Union

from shared.models.stream import EVENT_KINDS, StreamEvent
from shared.protocol import OpaquePayload

LOGGER = logging.getLogger(__name__)

# Handlers registered under this kind see every inbound message, decoded or not.
GENERIC_KIND = "message"

Message = Union[StreamEvent, OpaquePayload]
Handler = Callable[[Any], None]


class HandlerRegistry:
    """Maps event kind to an ordered set of handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Dict[Handler, None]] = {kind: {} for kind in (*EVENT_KINDS, GENERIC_KIND)}

    def add(self, kind: str, handler: Handler) -> None:
        self._bucket(kind)[handler] = None

    def remove(self, kind: str, handler: Handler) -> None:
        self._bucket(kind).pop(handler, None)

    def count(self, kind: str) -> int:
        return len(self._bucket(kind))

    def dispatch(self, message: Message) -> None:
        """Invoke typed handlers for the event kind, then the generic handlers."""

        if not isinstance(message, OpaquePayload):
            self._invoke(message.type, message)
        self._invoke(GENERIC_KIND, message)

    def _invoke(self, kind: str, message: Message) -> None:
        for handler in list(self._handlers[kind]):
            try:
                handler(message)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Stream handler for %s failed", kind)

    def _bucket(self, kind: str) -> Dict[Handler, None]:
        try:
            return self._handlers[kind]
        except KeyError:
            raise ValueError(f"Unknown stream event kind {kind!r}") from None
