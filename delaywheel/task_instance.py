"""Running instances of tasks and the chains through which users reach them."""

from __future__ import annotations

import asyncio
import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

from .errors import (
    CancelTimeoutError,
    ChannelError,
    DisCancelError,
    ExpiredError,
    MissingEventSenderError,
)
from .state import ChainState, InstanceState


class EventSender(Protocol):
    """Anything that accepts timer events without blocking."""

    def put_nowait(self, item: Any) -> None: ...


@dataclass(frozen=True)
class CancelTask:
    """Timer event asking to cancel one running instance of a task."""

    task_id: int
    record_id: int


def _wake(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class _AsyncWaiters:
    """Futures of coroutines waiting on a condition, woken from any thread.

    Callers hold the lock of the object that owns the waiters.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def add(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future) -> None:
        self._entries.append((loop, future))

    def discard(self, future: asyncio.Future) -> None:
        self._entries = [entry for entry in self._entries if entry[1] is not future]

    def wake_all(self) -> None:
        entries, self._entries = self._entries, []
        for loop, future in entries:
            try:
                loop.call_soon_threadsafe(_wake, future)
            except RuntimeError:
                # The waiting loop is already closed; nobody is left to wake.
                pass


class _InstanceHeader:
    """Shared state of one instance and the signal that it has ended."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = InstanceState.RUNNING
        self._finished = threading.Event()
        self._waiters = _AsyncWaiters()

    @property
    def state(self) -> InstanceState:
        with self._lock:
            return self._state

    def notify(self, state: int) -> None:
        with self._lock:
            self._state = InstanceState(state)
            self._finished.set()
            self._waiters.wake_all()

    def wait(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)

    async def wait_async(self) -> None:
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._finished.is_set():
                return
            future = loop.create_future()
            self._waiters.add(loop, future)
        try:
            await future
        finally:
            with self._lock:
                self._waiters.discard(future)


@dataclass(eq=False)
class Instance:
    """One running instance of a task."""

    task_id: int = 0
    record_id: int = 0
    _header: _InstanceHeader = field(default_factory=_InstanceHeader, init=False, repr=False)

    @property
    def state(self) -> InstanceState:
        """Current state of the instance."""
        return self._header.state

    def notify_cancel_finish(self, state: int) -> None:
        """Record the final state and wake everyone waiting for the instance."""
        self._header.notify(state)


def _seconds(timeout: float | timedelta) -> float:
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)


@dataclass
class TaskInstance:
    """A running instance handed to the user, able to cancel itself."""

    instance: Instance
    timer_event_sender: EventSender

    @property
    def task_id(self) -> int:
        return self.instance.task_id

    @property
    def record_id(self) -> int:
        return self.instance.record_id

    @property
    def state(self) -> InstanceState:
        """Current state of the instance."""
        return self.instance.state

    def _cancel(self) -> None:
        if self.state != InstanceState.RUNNING:
            raise DisCancelError()
        try:
            self.timer_event_sender.put_nowait(CancelTask(self.task_id, self.record_id))
        except (queue.Full, asyncio.QueueFull) as exc:
            raise ChannelError("TaskInstance sending failure.") from exc

    def cancel_with_wait(self) -> InstanceState:
        """Cancel the instance and block until it has ended."""
        self._cancel()
        self.instance._header.wait()
        return self.state

    def cancel_with_wait_timeout(self, timeout: float | timedelta) -> InstanceState:
        """Cancel the instance and block until it has ended or `timeout` passes."""
        self._cancel()
        if not self.instance._header.wait(_seconds(timeout)):
            raise CancelTimeoutError()
        return self.state

    async def cancel_with_async_wait(self) -> InstanceState:
        """Cancel the instance and await its end."""
        self._cancel()
        await self.instance._header.wait_async()
        return self.state


class _InstanceChannel:
    """Unbounded channel of instances, readable from threads and coroutines."""

    def __init__(self) -> None:
        self._items: deque[Instance] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._waiters = _AsyncWaiters()
        self.state = ChainState.LIVING

    def put(self, item: Instance) -> bool:
        with self._cond:
            if self._closed:
                return False
            self._items.append(item)
            self._cond.notify()
            self._waiters.wake_all()
            return True

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            self._waiters.wake_all()

    def try_get(self) -> Instance:
        with self._cond:
            if self._items:
                return self._items.popleft()
            raise ChannelError("TaskInstance event get failed.")

    def get(self) -> Instance:
        with self._cond:
            while not self._items:
                if self._closed:
                    raise ChannelError()
                self._cond.wait()
            return self._items.popleft()

    async def get_async(self) -> Instance:
        loop = asyncio.get_running_loop()
        while True:
            with self._cond:
                if self._items:
                    return self._items.popleft()
                if self._closed:
                    raise ChannelError()
                future = loop.create_future()
                self._waiters.add(loop, future)
            try:
                await future
            finally:
                with self._cond:
                    self._waiters.discard(future)


class TaskInstancesChain:
    """The user's side of a chain of running instances of one task."""

    def __init__(
        self, channel: _InstanceChannel, timer_event_sender: EventSender | None = None
    ) -> None:
        self._channel = channel
        self.timer_event_sender = timer_event_sender

    @property
    def state(self) -> ChainState:
        """State shared by the chain and its maintainer."""
        return self._channel.state

    def _event_sender(self) -> EventSender:
        if self._channel.state == ChainState.ABANDONED:
            raise ExpiredError()
        if self.timer_event_sender is None:
            raise MissingEventSenderError()
        return self.timer_event_sender

    def next(self) -> TaskInstance:
        """Take the next instance without blocking."""
        sender = self._event_sender()
        return TaskInstance(self._channel.try_get(), sender)

    def next_with_wait(self) -> TaskInstance:
        """Block until the next instance is available and take it."""
        sender = self._event_sender()
        return TaskInstance(self._channel.get(), sender)

    async def next_with_async_wait(self) -> TaskInstance:
        """Await the next instance and take it."""
        sender = self._event_sender()
        return TaskInstance(await self._channel.get_async(), sender)

    def close(self) -> None:
        """Mark the chain as dropped by the user."""
        self._channel.state = ChainState.DROPPED

    def __enter__(self) -> TaskInstancesChain:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class TaskInstancesChainMaintainer:
    """The timer's side of a chain: it publishes new running instances."""

    def __init__(self, channel: _InstanceChannel) -> None:
        self._channel = channel
        self.instances: list[Instance] = []

    @property
    def state(self) -> ChainState:
        """State shared by the chain and its maintainer."""
        return self._channel.state

    async def push_instance(self, instance: Instance) -> None:
        """Publish a new running instance to the chain."""
        self._channel.put(instance)
        self.instances.append(instance)

    def notify_cancel_finish(self, record_id: int, state: int) -> bool:
        """Tell the instance with `record_id` that it has ended; report if one was found."""
        found = False
        for instance in self.instances:
            if instance.record_id == record_id:
                instance.notify_cancel_finish(state)
                found = True
        self.instances = [i for i in self.instances if i.record_id != record_id]
        return found

    def close(self) -> None:
        """Stop maintaining the chain; the user's side then reports it expired."""
        self._channel.state = ChainState.ABANDONED
        self._channel.close()

    def __enter__(self) -> TaskInstancesChainMaintainer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def task_instance_chain_pair() -> tuple[TaskInstancesChain, TaskInstancesChainMaintainer]:
    """Create a linked chain and maintainer; the chain has no event sender yet."""
    channel = _InstanceChannel()
    return TaskInstancesChain(channel), TaskInstancesChainMaintainer(channel)