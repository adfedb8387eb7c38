"""Linear reconnection backoff with a fixed attempt budget."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconnectPolicy:
    """Attempt ``n`` (1-indexed) waits ``n * base_delay_ms``; at most ``max_attempts`` tries."""

    max_attempts: int = 3
    base_delay_ms: int = 5000

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")

    def allows(self, attempt: int) -> bool:
        return 1 <= attempt <= self.max_attempts

    def delay_ms(self, attempt: int) -> int:
        if attempt < 1:
            raise ValueError(f"attempt is 1-indexed, got {attempt}")
        return self.base_delay_ms * attempt

    def delay_seconds(self, attempt: int) -> float:
        return self.delay_ms(attempt) / 1000.0
