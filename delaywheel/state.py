"""State flags of task instances and of instance chains."""

from enum import IntEnum


class InstanceState(IntEnum):
    """State of a running task instance."""

    RUNNING = 1 << 1
    COMPLETED = 1 << 2
    CANCELLED = 1 << 3
    TIMEOUT = 1 << 4


class ChainState(IntEnum):
    """State of a chain of task instances."""

    LIVING = 1 << 1
    DROPPED = 1 << 2
    ABANDONED = 1 << 3