"""Tests for the FIFO ticket dispenser that serializes session mutations."""

import asyncio

import pytest

from discord_music_sessions.domain.shared.task_queue import TaskQueue


class TestTaskQueue:
    async def test_first_ticket_is_granted_immediately(self):
        queue = TaskQueue()

        await asyncio.wait_for(queue.enqueue(), timeout=0.1)

        assert queue.remaining == 1
        queue.complete()
        assert queue.remaining == 0

    async def test_second_ticket_waits_for_complete(self):
        queue = TaskQueue()
        await queue.enqueue()
        second = queue.enqueue()

        await asyncio.sleep(0)
        assert not second.done()

        queue.complete()
        await asyncio.wait_for(second, timeout=0.1)
        assert queue.remaining == 1

    async def test_complete_on_empty_queue_is_noop(self):
        queue = TaskQueue()

        queue.complete()

        assert queue.remaining == 0

    async def test_tickets_run_in_enqueue_order(self):
        queue = TaskQueue()
        order: list[int] = []

        async def worker(n: int, delay: float) -> None:
            async with queue.ticket():
                await asyncio.sleep(delay)
                order.append(n)

        # Earlier workers sleep longer, so only the queue keeps them ordered
        await asyncio.gather(*(worker(n, 0.01 * (5 - n)) for n in range(5)))

        assert order == [0, 1, 2, 3, 4]
        assert queue.remaining == 0

    async def test_critical_sections_never_overlap(self):
        queue = TaskQueue()
        inside = 0
        peak = 0

        async def worker() -> None:
            nonlocal inside, peak
            async with queue.ticket():
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0)
                inside -= 1

        await asyncio.gather(*(worker() for _ in range(10)))

        assert peak == 1

    async def test_ticket_released_when_body_raises(self):
        queue = TaskQueue()

        with pytest.raises(RuntimeError):
            async with queue.ticket():
                raise RuntimeError("boom")

        async with asyncio.timeout(0.1):
            async with queue.ticket():
                pass
        assert queue.remaining == 0

    async def test_cancelled_waiter_does_not_block_followers(self):
        queue = TaskQueue()
        release = asyncio.Event()
        order: list[str] = []

        async def holder() -> None:
            async with queue.ticket():
                await release.wait()
                order.append("holder")

        async def waiter(name: str) -> None:
            async with queue.ticket():
                order.append(name)

        first = asyncio.create_task(holder())
        await asyncio.sleep(0)
        cancelled = asyncio.create_task(waiter("cancelled"))
        follower = asyncio.create_task(waiter("follower"))
        await asyncio.sleep(0)

        cancelled.cancel()
        await asyncio.sleep(0)
        release.set()
        await asyncio.wait_for(asyncio.gather(first, follower), timeout=0.5)

        assert cancelled.cancelled()
        assert order == ["holder", "follower"]
        assert queue.remaining == 0
