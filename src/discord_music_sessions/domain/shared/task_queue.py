"""FIFO ticket dispenser serializing structural mutations of one session."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class TaskQueue:
    """Grants at most one in-flight ticket at a time, in enqueue order.

    ``enqueue()`` appends a ticket and returns an awaitable that completes once
    every ticket enqueued before it has called ``complete()``. The holder must
    call ``complete()`` exactly once when its critical section ends; prefer
    ``ticket()`` which does so on every exit path.

    Tickets are not re-entrant: code already holding one must not enqueue
    another on the same queue.
    """

    def __init__(self) -> None:
        self._tickets: deque[asyncio.Future[None]] = deque()

    @property
    def remaining(self) -> int:
        """Number of tickets currently held or waiting."""
        return len(self._tickets)

    def enqueue(self) -> asyncio.Future[None]:
        loop = asyncio.get_running_loop()
        if self._tickets:
            previous = self._tickets[-1]
        else:
            previous = loop.create_future()
            previous.set_result(None)
        self._tickets.append(loop.create_future())
        return previous

    def complete(self) -> None:
        """Release the head ticket and wake the next waiter."""
        if not self._tickets:
            return
        self._release(self._tickets[0])

    def _release(self, ticket: asyncio.Future[None]) -> None:
        try:
            self._tickets.remove(ticket)
        except ValueError:
            pass
        if not ticket.done():
            ticket.set_result(None)

    @asynccontextmanager
    async def ticket(self) -> AsyncIterator[None]:
        waiter = self.enqueue()
        own = self._tickets[-1]
        try:
            await asyncio.shield(waiter)
        except asyncio.CancelledError:
            # Hand our turn on only once everything ahead of us is done
            waiter.add_done_callback(lambda _: self._release(own))
            raise
        try:
            yield
        finally:
            self._release(own)
