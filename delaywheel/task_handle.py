"""Handles of running task instances and the trace that owns them."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from .errors import HandlerNotFoundError

logger = logging.getLogger(__name__)


class DelayTaskHandler(ABC):
    """Something that can stop a running task instance."""

    @abstractmethod
    def quit(self) -> None:
        """Stop the running task instance."""


class NullHandler(DelayTaskHandler):
    """Handler for instances that need nothing done to stop."""

    def quit(self) -> None:
        return None


@dataclass
class FutureHandler(DelayTaskHandler):
    """Stops an instance by cancelling its future or asyncio task."""

    future: Any

    def quit(self) -> None:
        future = self.future
        if isinstance(future, asyncio.Future):
            loop = future.get_loop()
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop and loop.is_running():
                loop.call_soon_threadsafe(future.cancel)
                return
        future.cancel()


@dataclass
class DelayTaskHandlerBox:
    """A handler together with the identity and lifetime of its instance."""

    task_id: int
    record_id: int
    handler: DelayTaskHandler | None = None
    start_time: int = 0
    end_time: int | None = None

    def quit(self) -> None:
        """Stop the instance; later calls do nothing."""
        handler, self.handler = self.handler, None
        if handler is not None:
            handler.quit()


@dataclass
class TaskTrace:
    """Owns the handlers of all running instances, grouped by task id."""

    _inner: dict[int, list[DelayTaskHandlerBox]] = field(default_factory=dict)

    def insert(self, task_id: int, handler_box: DelayTaskHandlerBox) -> None:
        """Record a handler for a running instance of the task."""
        self._inner.setdefault(task_id, []).append(handler_box)

    def quit_one_task_handler(self, task_id: int, record_id: int) -> None:
        """Remove the handler of one instance and stop it."""
        handlers = self._inner.get(task_id)
        if handlers is None:
            raise HandlerNotFoundError(
                f"No task-handler-list found (task-id: {task_id} )"
            )
        position = next(
            (i for i, box in enumerate(handlers) if box.record_id == record_id), None
        )
        if position is None:
            raise HandlerNotFoundError(
                f"No task-handle-index found (task-id: {task_id} , record-id: {record_id})"
            )
        box = handlers.pop(position)
        box.quit()

    def clear(self) -> None:
        """Stop every recorded handler and forget them all."""
        inner, self._inner = self._inner, {}
        for handlers in inner.values():
            for box in handlers:
                try:
                    box.quit()
                except Exception as exc:  # one failing handler must not stop the rest
                    logger.error("`DelayTaskHandlerBox` quit failed: %s", exc)

    def __len__(self) -> int:
        return sum(len(handlers) for handlers in self._inner.values())

    def __contains__(self, task_id: object) -> bool:
        return bool(self._inner.get(task_id))  # type: ignore[arg-type]