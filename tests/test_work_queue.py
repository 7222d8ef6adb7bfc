"""
Tests for the capacity-1 work queue
"""

import asyncio

from m3u_cli.core.work_queue import WorkQueue


def recording_unit(log: list, label: str, delay: float = 0.0):
    async def unit():
        log.append(f"{label}:start")
        await asyncio.sleep(delay)
        log.append(f"{label}:end")

    return unit


async def test_units_run_one_at_a_time_in_order():
    log = []
    queue = WorkQueue()

    queue.add(recording_unit(log, "a", 0.01))
    queue.add(recording_unit(log, "b"))
    await queue.join()

    assert log == ["a:start", "a:end", "b:start", "b:end"]
    assert queue.operation_count == 0


async def test_suspended_queue_holds_pending_units():
    log = []
    queue = WorkQueue()
    queue.suspend()

    queue.add(recording_unit(log, "a"))
    await asyncio.sleep(0.01)
    assert log == []
    assert queue.pending_count == 1

    queue.resume()
    await queue.join()

    assert log == ["a:start", "a:end"]


async def test_cancel_all_drops_pending_units():
    log = []
    queue = WorkQueue()
    queue.suspend()
    queue.add(recording_unit(log, "a"))
    queue.add(recording_unit(log, "b"))

    queue.cancel_all()
    await asyncio.wait_for(queue.join(), timeout=1)

    assert log == []
    assert queue.pending_count == 0


async def test_cancel_all_leaves_running_unit_alone():
    log = []
    queue = WorkQueue()
    queue.add(recording_unit(log, "a", 0.02))
    queue.add(recording_unit(log, "b"))
    await asyncio.sleep(0.005)

    assert queue.is_running
    queue.cancel_all()
    await queue.join()

    assert log == ["a:start", "a:end"]


async def test_failing_unit_does_not_stop_the_queue():
    log = []
    queue = WorkQueue()

    async def broken():
        raise RuntimeError("boom")

    queue.add(broken)
    queue.add(recording_unit(log, "b"))
    await queue.join()

    assert log == ["b:start", "b:end"]


async def test_join_on_idle_queue_returns_immediately():
    await asyncio.wait_for(WorkQueue().join(), timeout=1)
