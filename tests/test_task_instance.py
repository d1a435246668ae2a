import asyncio
import queue
import threading
import time

import pytest

from delaywheel.errors import (
    CancelTimeoutError,
    ChannelError,
    DisCancelError,
    ExpiredError,
    MissingEventSenderError,
)
from delaywheel.state import ChainState, InstanceState
from delaywheel.task_instance import (
    CancelTask,
    Instance,
    TaskInstance,
    task_instance_chain_pair,
)


def _chain_with_sender(sender=None):
    chain, maintainer = task_instance_chain_pair()
    chain.timer_event_sender = sender if sender is not None else queue.Queue()
    return chain, maintainer


def _respond(events, instance, state, results):
    results.append(events.get(timeout=5))
    instance.notify_cancel_finish(state)


def test_new_instance_is_running():
    instance = Instance(task_id=4, record_id=9)
    assert instance.state == InstanceState.RUNNING


def test_notify_cancel_finish_sets_state():
    instance = Instance(task_id=4, record_id=9)
    instance.notify_cancel_finish(InstanceState.COMPLETED)
    assert instance.state == InstanceState.COMPLETED


def test_pair_starts_living():
    chain, maintainer = task_instance_chain_pair()
    assert chain.state == ChainState.LIVING
    assert maintainer.state == ChainState.LIVING


def test_next_without_sender_fails():
    chain, _ = task_instance_chain_pair()
    with pytest.raises(MissingEventSenderError):
        chain.next()


def test_next_on_empty_chain_fails():
    chain, _ = _chain_with_sender()
    with pytest.raises(ChannelError):
        chain.next()


def test_push_then_next_returns_instance():
    chain, maintainer = _chain_with_sender()
    instance = Instance(task_id=1, record_id=7)
    asyncio.run(maintainer.push_instance(instance))
    task_instance = chain.next()
    assert task_instance.instance is instance
    assert (task_instance.task_id, task_instance.record_id) == (1, 7)
    assert task_instance.state == InstanceState.RUNNING
    assert maintainer.instances == [instance]


def test_instances_come_out_in_push_order():
    chain, maintainer = _chain_with_sender()
    pushed = [Instance(task_id=2, record_id=r) for r in (5, 6, 8)]

    async def push_all():
        for instance in pushed:
            await maintainer.push_instance(instance)

    asyncio.run(push_all())
    assert [chain.next().record_id for _ in pushed] == [5, 6, 8]


def test_abandoned_chain_is_expired():
    chain, maintainer = _chain_with_sender()
    asyncio.run(maintainer.push_instance(Instance(task_id=1, record_id=1)))
    maintainer.close()
    assert chain.state == ChainState.ABANDONED
    with pytest.raises(ExpiredError):
        chain.next()
    with pytest.raises(ExpiredError):
        chain.next_with_wait()


def test_closing_chain_marks_dropped():
    chain, maintainer = _chain_with_sender()
    with chain:
        pass
    assert maintainer.state == ChainState.DROPPED


def test_next_with_wait_blocks_until_push():
    chain, maintainer = _chain_with_sender()
    instance = Instance(task_id=3, record_id=11)

    def push_later():
        time.sleep(0.1)
        asyncio.run(maintainer.push_instance(instance))

    pusher = threading.Thread(target=push_later)
    pusher.start()
    task_instance = chain.next_with_wait()
    pusher.join()
    assert task_instance.instance is instance


def test_cancel_with_wait_sends_event_and_returns_state():
    events = queue.Queue()
    instance = Instance(task_id=1, record_id=42)
    task_instance = TaskInstance(instance, events)
    results = []
    responder = threading.Thread(
        target=_respond, args=(events, instance, InstanceState.CANCELLED, results)
    )
    responder.start()
    state = task_instance.cancel_with_wait()
    responder.join()
    assert state == InstanceState.CANCELLED
    assert results == [CancelTask(task_id=1, record_id=42)]


def test_cancel_finished_instance_fails():
    events = queue.Queue()
    instance = Instance(task_id=1, record_id=2)
    instance.notify_cancel_finish(InstanceState.COMPLETED)
    with pytest.raises(DisCancelError):
        TaskInstance(instance, events).cancel_with_wait()
    assert events.empty()


def test_cancel_with_wait_timeout_expires():
    events = queue.Queue()
    instance = Instance(task_id=5, record_id=6)
    with pytest.raises(CancelTimeoutError):
        TaskInstance(instance, events).cancel_with_wait_timeout(0.05)
    assert events.get_nowait() == CancelTask(task_id=5, record_id=6)


def test_cancel_with_wait_timeout_returns_state_when_finished():
    events = queue.Queue()
    instance = Instance(task_id=5, record_id=6)
    results = []
    responder = threading.Thread(
        target=_respond, args=(events, instance, InstanceState.TIMEOUT, results)
    )
    responder.start()
    state = TaskInstance(instance, events).cancel_with_wait_timeout(5)
    responder.join()
    assert state == InstanceState.TIMEOUT


def test_cancel_with_full_sender_fails():
    events = queue.Queue(maxsize=1)
    events.put_nowait("occupied")
    with pytest.raises(ChannelError):
        TaskInstance(Instance(task_id=1, record_id=1), events).cancel_with_wait()


def test_maintainer_notifies_instance_by_record_id():
    _, maintainer = _chain_with_sender()
    first = Instance(task_id=1, record_id=1)
    second = Instance(task_id=1, record_id=2)

    async def push_both():
        await maintainer.push_instance(first)
        await maintainer.push_instance(second)

    asyncio.run(push_both())
    assert maintainer.notify_cancel_finish(2, InstanceState.COMPLETED) is True
    assert second.state == InstanceState.COMPLETED
    assert first.state == InstanceState.RUNNING
    assert maintainer.instances == [first]
    assert maintainer.notify_cancel_finish(2, InstanceState.COMPLETED) is False


@pytest.mark.asyncio
async def test_next_with_async_wait_receives_later_push():
    chain, maintainer = _chain_with_sender()
    instance = Instance(task_id=8, record_id=3)

    async def push_later():
        await asyncio.sleep(0.05)
        await maintainer.push_instance(instance)

    pusher = asyncio.create_task(push_later())
    task_instance = await asyncio.wait_for(chain.next_with_async_wait(), timeout=5)
    await pusher
    assert task_instance.instance is instance


@pytest.mark.asyncio
async def test_next_with_async_wait_without_sender_fails():
    chain, _ = task_instance_chain_pair()
    with pytest.raises(MissingEventSenderError):
        await chain.next_with_async_wait()


@pytest.mark.asyncio
async def test_cancel_with_async_wait_woken_from_thread():
    events = queue.Queue()
    instance = Instance(task_id=2, record_id=13)
    results = []
    responder = threading.Thread(
        target=_respond, args=(events, instance, InstanceState.CANCELLED, results)
    )
    responder.start()
    state = await asyncio.wait_for(
        TaskInstance(instance, events).cancel_with_async_wait(), timeout=5
    )
    responder.join()
    assert state == InstanceState.CANCELLED
    assert results == [CancelTask(task_id=2, record_id=13)]