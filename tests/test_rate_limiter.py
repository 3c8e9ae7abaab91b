import asyncio

import pytest

from service.rate_limiter import SerializedDispatchQueue

from conftest import FakeClock


class Recorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, job_id, message):
        self.calls.append((job_id, message))


def _queue(clock, notify=None, **kwargs):
    return SerializedDispatchQueue(notify=notify, clock=clock, sleep=clock.sleep, **kwargs)


async def _settle(queue):
    for _ in range(20):
        if not queue.running:
            return
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_consecutive_dispatches_are_spaced():
    clock = FakeClock()
    notify = Recorder()
    queue = _queue(clock, notify)

    first = queue.enqueue(1)
    second = queue.enqueue(2)
    d1 = await first
    d2 = await second

    assert d1 == 1000.0
    assert d2 == 1060.0
    assert d2 - d1 >= 60
    assert notify.calls == [
        (2, "Waiting 59 seconds to avoid Instagram rate limiting..."),
        (2, None),
    ]


@pytest.mark.asyncio
async def test_first_dispatch_does_not_wait():
    clock = FakeClock()
    notify = Recorder()
    queue = _queue(clock, notify)

    assert await queue.enqueue(7) == 1000.0
    assert notify.calls == []


@pytest.mark.asyncio
async def test_dispatch_order_is_fifo():
    clock = FakeClock()
    queue = _queue(clock)
    order = []

    async def job(job_id):
        await queue.enqueue(job_id)
        order.append(job_id)

    await asyncio.gather(*(job(i) for i in (3, 1, 2)))

    assert order == [3, 1, 2]


@pytest.mark.asyncio
async def test_single_worker_stops_when_idle():
    clock = FakeClock()
    queue = _queue(clock)

    futures = [queue.enqueue(i) for i in range(3)]
    assert queue.running
    assert queue.pending == 3

    await asyncio.gather(*futures)
    await _settle(queue)

    assert not queue.running
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_spacing_holds_after_worker_restarts():
    clock = FakeClock()
    queue = _queue(clock)

    d1 = await queue.enqueue(1)
    await _settle(queue)
    assert not queue.running

    d2 = await queue.enqueue(2)

    assert d2 - d1 >= 60


@pytest.mark.asyncio
async def test_no_wait_once_interval_has_passed():
    clock = FakeClock()
    notify = Recorder()
    queue = _queue(clock, notify)

    await queue.enqueue(1)
    await _settle(queue)
    clock.now += 120

    await queue.enqueue(2)

    assert notify.calls == []


@pytest.mark.asyncio
async def test_notify_failure_does_not_stall_queue():
    clock = FakeClock()

    async def broken(job_id, message):
        raise RuntimeError("database is locked")

    queue = _queue(clock, broken)
    first = queue.enqueue(1)
    second = queue.enqueue(2)

    assert await first == 1000.0
    assert await second == 1060.0


@pytest.mark.asyncio
async def test_stop_cancels_waiting_jobs():
    queue = SerializedDispatchQueue(min_delay=3600, item_delay=0)

    first = queue.enqueue(1)
    second = queue.enqueue(2)
    third = queue.enqueue(3)
    await first
    await asyncio.sleep(0)

    await queue.stop()

    assert second.cancelled()
    assert third.cancelled()
    assert not queue.running
