"""Wall-clock helpers, the timer's second hand and the kind of runtime in use."""

from __future__ import annotations

import threading
import time
from enum import Enum

DEFAULT_TIMER_SLOT_COUNT = 3600
"""Number of slots on the timer wheel: one lap of the second hand."""


class RuntimeKind(Enum):
    """How the timer's background work is driven."""

    ASYNCIO = "asyncio"
    """Coroutines run on an asyncio event loop."""

    THREADED = "threaded"
    """Work runs on plain threads with blocking sleeps."""

    @classmethod
    def default(cls) -> RuntimeKind:
        """The runtime used when none is chosen."""
        return cls.ASYNCIO


class SecondHand:
    """The hand of the timer wheel; it points at the slot due now."""

    def __init__(self, slot_count: int = DEFAULT_TIMER_SLOT_COUNT, start: int = 0) -> None:
        if slot_count <= 0:
            raise ValueError(f"slot_count must be positive, got {slot_count}")
        if not 0 <= start < slot_count:
            raise ValueError(f"start must lie in [0, {slot_count}), got {start}")
        self._slot_count = slot_count
        self._position = start
        self._lock = threading.Lock()

    @property
    def slot_count(self) -> int:
        """Number of slots in one lap."""
        return self._slot_count

    def current(self) -> int:
        """The slot the hand points at."""
        with self._lock:
            return self._position

    def advance(self) -> int:
        """Move the hand one slot forward, wrapping at the end of a lap.

        Returns the slot the hand pointed at before moving.
        """
        with self._lock:
            previous = self._position
            self._position = (previous + 1) % self._slot_count
            return previous

    def __repr__(self) -> str:
        return f"SecondHand(slot_count={self._slot_count}, current={self.current()})"


def timestamp() -> int:
    """Seconds since the Unix epoch."""
    now = time.time_ns()
    if now < 0:
        raise RuntimeError("System time is before the Unix epoch!")
    return now // 1_000_000_000


def timestamp_micros() -> int:
    """Microseconds since the Unix epoch."""
    now = time.time_ns()
    if now < 0:
        raise RuntimeError("System time is before the Unix epoch!")
    return now // 1_000