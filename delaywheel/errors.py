"""Exceptions raised by task scheduling, task instances and child processes."""

from __future__ import annotations


class _DefaultMessageError(Exception):
    """Base for errors that carry a fixed default message."""

    default_message = ""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class TaskError(_DefaultMessageError):
    """Failure of a `Task`-related operation."""

    default_message = "Task operation failed."


class TaskSendError(TaskError):
    """A task event could not be sent."""

    default_message = "Task sending failure."


class TaskReceiveError(TaskError):
    """A task event could not be received."""

    default_message = "Task event get failed."


class FrequencyAnalyzeError(TaskError):
    """A cron expression or frequency could not be analysed."""

    default_message = "Cron expression analysis error."


class TaskInstanceError(_DefaultMessageError):
    """Failure of a `TaskInstance`-related operation."""

    default_message = "Task instance operation failed."


class DisCancelError(TaskInstanceError):
    """The instance is no longer running and cannot be cancelled."""

    default_message = "The task has been (completed or canceled) and cannot be cancelled."


class CancelTimeoutError(TaskInstanceError):
    """Waiting for a cancellation took longer than allowed."""

    default_message = "Waiting for cancellation timeout."


class MissingEventSenderError(TaskInstanceError):
    """The chain has no event sender to talk to the timer."""

    default_message = "Missing `timer_event_sender`."


class ChannelError(TaskInstanceError):
    """The internal instance channel failed."""

    default_message = "Task instance channel exception."


class ExpiredError(TaskInstanceError):
    """Running instances of the task are no longer maintained."""

    default_message = "Running instance of the task is no longer maintained."


class HandlerNotFoundError(LookupError):
    """No running task handler matches the given task id and record id."""


class CommandChildError(Exception):
    """Conditions for running a child process are not met."""

    def __init__(self, condition: str) -> None:
        self.condition = condition
        super().__init__(f"Process execution conditions are not met for {condition}")