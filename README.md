# delaywheel

Building blocks for a delay timer that runs cyclic tasks and lets their
running instances be cancelled or timed out.

## Modules

- `delaywheel.clock`: `timestamp()` and `timestamp_micros()` give the current
  Unix time in seconds and microseconds. `SecondHand` is the hand of a timing
  wheel. `current()` returns the slot it points at, and `advance()` moves it one
  slot forward, wrapping at `slot_count` (default
  `DEFAULT_TIMER_SLOT_COUNT`, 3600), and returns the slot it left.
  `RuntimeKind` is either `ASYNCIO` (the default) or `THREADED`.
- `delaywheel.state`: `InstanceState` (`RUNNING`, `COMPLETED`, `CANCELLED`,
  `TIMEOUT`) and `ChainState` (`LIVING`, `DROPPED`, `ABANDONED`).
- `delaywheel.task_handle`: `DelayTaskHandler` is the abstract type of anything
  that can `quit()` a running instance. `NullHandler` does nothing when it
  quits. `FutureHandler` cancels a future or asyncio task, and it does so
  thread-safely when the future's loop is running elsewhere.
  `DelayTaskHandlerBox` wraps a handler with its task id, record id, start
  time and optional end time, and it quits at most once. `TaskTrace` holds
  the boxes by task id. `quit_one_task_handler(task_id, record_id)` removes
  one box and quits it, and raises `HandlerNotFoundError` when there is none.
  `clear()` quits all of the boxes.
- `delaywheel.task_instance`: `task_instance_chain_pair()` creates a
  `TaskInstancesChain` (the user's side) and a `TaskInstancesChainMaintainer`
  (the timer's side). The maintainer publishes `Instance` objects with
  `await push_instance(...)`, and the chain hands them out as `TaskInstance`
  objects through `next()`, `next_with_wait()` or `await next_with_async_wait()`.
  A `TaskInstance` puts a `CancelTask` event on the chain's
  `timer_event_sender` and waits for the instance to end, in one of three ways:
  `cancel_with_wait()`, `cancel_with_wait_timeout(timeout)` or
  `await cancel_with_async_wait()`.
- `delaywheel.sweeper`: `RecycleUnit(deadline, task_id, record_id)` is ordered
  by deadline. `RecyclingBins` keeps the units in a min-heap.
  `add_recycle_unit()` reads units from an `asyncio.Queue` until it receives
  `None`. `recycle()` sends a `TimeoutTask` event for each unit whose deadline
  has passed, and it pauses until the next deadline, or for three seconds when
  none is pending.
- `delaywheel.errors`: the exceptions. `TaskSendError`, `TaskReceiveError` and
  `FrequencyAnalyzeError` derive from `TaskError`. `DisCancelError`,
  `CancelTimeoutError`, `MissingEventSenderError`, `ChannelError` and
  `ExpiredError` derive from `TaskInstanceError`. `HandlerNotFoundError` is a
  `LookupError`, and `CommandChildError` is a plain `Exception`.

## Installing

```
pip install .
```

Install with the test dependencies and run the tests:

```
pip install ".[test]"
pytest
```

## Following and cancelling task instances

```python
import asyncio

from delaywheel.state import InstanceState
from delaywheel.task_instance import Instance, task_instance_chain_pair


async def main():
    events = asyncio.Queue()
    chain, maintainer = task_instance_chain_pair()
    chain.timer_event_sender = events

    # The timer side publishes a running instance ...
    await maintainer.push_instance(Instance(task_id=1, record_id=42))

    # ... and the user side takes it.
    task_instance = chain.next()

    async def timer_side():
        event = await events.get()  # CancelTask(task_id=1, record_id=42)
        maintainer.notify_cancel_finish(event.record_id, InstanceState.CANCELLED)

    state, _ = await asyncio.gather(task_instance.cancel_with_async_wait(), timer_side())
    assert state is InstanceState.CANCELLED


asyncio.run(main())
```

An instance that is no longer `RUNNING` cannot be cancelled, and trying
raises `DisCancelError`. After `maintainer.close()`, the chain raises
`ExpiredError`. A chain without an event sender raises
`MissingEventSenderError`. Both sides can be used as context managers, and
each closes itself on exit.

## What this package does not do

The package provides the parts, not a complete timer. It has no scheduler that
turns the wheel and starts tasks, no task builder, no parsing of cron
expressions or other frequencies, and no event loop that dispatches the
`CancelTask` and `TimeoutTask` events. The caller must consume these events and
then call `notify_cancel_finish` and `TaskTrace.quit_one_task_handler` itself.