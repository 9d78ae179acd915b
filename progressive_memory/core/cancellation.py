"""Deadline and cancellation primitives for a single compaction call."""

from __future__ import annotations

import threading
import time


class CancellationToken:
    """Thread-safe flag a caller can set to stop waiting on summaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Deadline:
    """Absolute point on the monotonic clock after which a call must return."""

    def __init__(self, seconds: float | None) -> None:
        self._expires_at = None if seconds is None else time.monotonic() + max(0.0, seconds)

    @classmethod
    def coerce(cls, value: Deadline | float | int | None) -> Deadline:
        if isinstance(value, Deadline):
            return value
        return cls(None if value is None else float(value))

    def remaining(self) -> float | None:
        """Seconds left, or None when there is no deadline."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0
