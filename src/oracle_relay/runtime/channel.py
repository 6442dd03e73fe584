from __future__ import annotations

import asyncio
from collections import deque
from enum import Enum

from ingestion.contracts.quote import QuotePrice
from oracle_relay.exceptions.core import ChannelClosedError


class ChannelState(Enum):
    OPEN = "open"
    CLOSED = "closed"


class HandoffChannel:
    """
    Bounded FIFO between the scheduler (single producer) and the submission
    worker (single consumer).

    Semantics:
      - put() blocks while full; accepted observations are never dropped.
      - CLOSED is terminal. put() on a closed channel, or a put() blocked
        when the channel closes, raises ChannelClosedError.
      - get() keeps delivering items queued before close, then raises
        ChannelClosedError.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"channel capacity must be > 0, got {capacity}")
        self._capacity = int(capacity)
        self._items: deque[QuotePrice] = deque()
        self._cond = asyncio.Condition()
        self._state = ChannelState.OPEN

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is ChannelState.CLOSED

    def qsize(self) -> int:
        return len(self._items)

    def full(self) -> bool:
        return len(self._items) >= self._capacity

    async def put(self, quote: QuotePrice) -> None:
        async with self._cond:
            while self._state is ChannelState.OPEN and len(self._items) >= self._capacity:
                await self._cond.wait()
            if self._state is not ChannelState.OPEN:
                raise ChannelClosedError("handoff channel is closed")
            self._items.append(quote)
            self._cond.notify_all()

    async def get(self) -> QuotePrice:
        async with self._cond:
            while not self._items and self._state is ChannelState.OPEN:
                await self._cond.wait()
            if self._items:
                quote = self._items.popleft()
                self._cond.notify_all()
                return quote
            raise ChannelClosedError("handoff channel is closed")

    async def close(self) -> None:
        async with self._cond:
            self._state = ChannelState.CLOSED
            self._cond.notify_all()
