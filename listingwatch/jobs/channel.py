# listingwatch/jobs/channel.py
from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """send()/recv() on a channel that has been closed."""


class Channel(Generic[T]):
    """
    Unbuffered asyncio channel: send() returns only once a receiver took the
    value. close() is idempotent and fails any pending send with
    ChannelClosed, so a producer blocked on a handoff is never stranded.

    A value stays with its sender until a receiver is running and picks it up;
    waiting receivers are only woken. A receiver cancelled after its wake-up
    (asyncio.wait_for, cancelled select losers) therefore never drops a value.

    Must be used from a single event loop.
    """

    def __init__(self) -> None:
        self._senders: deque[tuple[T, asyncio.Future[None]]] = deque()
        self._receivers: deque[asyncio.Future[None]] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, value: T) -> None:
        if self._closed:
            raise ChannelClosed()

        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        entry = (value, done)
        self._senders.append(entry)
        self._wake_receiver()
        try:
            await done
        finally:
            # cancelled while waiting: withdraw the offer
            for i, pending in enumerate(self._senders):
                if pending is entry:
                    del self._senders[i]
                    break

    async def recv(self) -> T:
        while True:
            while self._senders:
                value, done = self._senders.popleft()
                if not done.done():
                    done.set_result(None)
                    return value

            if self._closed:
                raise ChannelClosed()

            wakeup: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._receivers.append(wakeup)
            try:
                await wakeup
            except asyncio.CancelledError:
                # woken but cancelled before taking the value: pass the turn on
                if wakeup.done() and not wakeup.cancelled():
                    self._wake_receiver()
                raise
            finally:
                if wakeup in self._receivers:
                    self._receivers.remove(wakeup)

    def _wake_receiver(self) -> None:
        while self._receivers:
            wakeup = self._receivers.popleft()
            if not wakeup.done():
                wakeup.set_result(None)
                return

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        while self._senders:
            _value, done = self._senders.popleft()
            if not done.done():
                done.set_exception(ChannelClosed())
        while self._receivers:
            wakeup = self._receivers.popleft()
            if not wakeup.done():
                wakeup.set_exception(ChannelClosed())

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[T]:
        while True:
            try:
                value = await self.recv()
            except ChannelClosed:
                return
            yield value
