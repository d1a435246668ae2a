"""Building blocks for a delayed, cyclic task timer: clock, states, handles, instances and timeout sweeping."""

__version__ = "0.1.0"

__all__ = ["clock", "errors", "state", "sweeper", "task_handle", "task_instance"]