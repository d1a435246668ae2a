"""Recycler that times out running task instances past their deadline."""

from __future__ import annotations

import asyncio
import heapq
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .clock import RuntimeKind, timestamp

logger = logging.getLogger(__name__)

_BATCH = 200
_DEFAULT_PAUSE = 3


@dataclass(frozen=True)
class TimeoutTask:
    """Timer event saying that a running instance has run out of time."""

    task_id: int
    record_id: int


@dataclass(frozen=True, order=True)
class RecycleUnit:
    """A running instance due to be timed out; ordered and compared by deadline."""

    deadline: int
    task_id: int = field(default=0, compare=False)
    record_id: int = field(default=0, compare=False)


class RecyclingBins:
    """Keeps recycle units in a min-heap and emits timeouts once they are due.

    `recycle_unit_sources` is an asyncio queue of `RecycleUnit`; putting `None`
    on it closes it. `timer_event_sender` is a queue whose `put` may be a
    coroutine (asyncio) or a plain call.
    """

    def __init__(
        self,
        recycle_unit_sources: asyncio.Queue,
        timer_event_sender: Any,
        runtime_kind: RuntimeKind = RuntimeKind.ASYNCIO,
    ) -> None:
        self._heap: list[RecycleUnit] = []
        self._lock = asyncio.Lock()
        self._sources = recycle_unit_sources
        self._timer_event_sender = timer_event_sender
        self.runtime_kind = runtime_kind

    def __len__(self) -> int:
        return len(self._heap)

    async def recycle(self) -> None:
        """Forever emit a timeout for each unit whose deadline has passed."""
        while True:
            duration: int | None = None
            async with self._lock:
                now = timestamp()
                for _ in range(_BATCH):
                    if not self._heap:
                        break
                    earliest = self._heap[0]
                    if earliest.deadline > now:
                        duration = earliest.deadline - now
                        break
                    unit = heapq.heappop(self._heap)
                    await self.send_timer_event(TimeoutTask(unit.task_id, unit.record_id))
            await self.yield_for_while(duration)

    async def send_timer_event(self, event: Any) -> None:
        """Send an event to the timer, logging rather than raising on failure."""
        try:
            result = self._timer_event_sender.put(event)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(" `send_timer_event` : %s", exc)

    async def add_recycle_unit(self) -> None:
        """Move units from the source queue into the heap until it is closed."""
        while True:
            for _ in range(_BATCH):
                unit = await self._sources.get()
                if unit is None:
                    return
                async with self._lock:
                    heapq.heappush(self._heap, unit)
            await asyncio.sleep(0)

    async def yield_for_while(self, duration: float | None) -> None:
        """Pause for `duration` seconds, three when none is given."""
        seconds = _DEFAULT_PAUSE if duration is None else duration
        if self.runtime_kind is RuntimeKind.THREADED:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, time.sleep, seconds)
        else:
            await asyncio.sleep(seconds)