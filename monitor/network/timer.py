"""Cancellable one-shot timer bound to the running event loop."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol


class Timer(Protocol):
    @property
    def active(self) -> bool:
        ...

    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class ScopedTimer:
    """Fires ``callback`` once after ``delay`` seconds unless cancelled first."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._fired = False
        self._handle: Optional[asyncio.TimerHandle] = asyncio.get_running_loop().call_later(delay, self._fire)

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._fired

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._fired = True
        self._handle = None
        self._callback()
