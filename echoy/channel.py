"""Bounded, closable FIFO used between the relay, provider and session threads."""

import threading
import time
from collections import deque
from typing import Generic, Iterator, TypeVar

from echoy.context import Context
from echoy.errors import Cancelled

T = TypeVar("T")

# How often blocked senders/receivers re-check their context
POLL_INTERVAL = 0.05


class ChannelClosed(Exception):
    """Raised on receive from a drained closed channel, or send/close after close."""

    pass


class Channel(Generic[T]):
    """
    Thread-safe channel with Go-style close semantics.

    Items are delivered in send order. After `close()` receivers drain what is
    left, then get `ChannelClosed`. Sends and receives accept a `Context` and
    give up with `Cancelled` once it is cancelled.
    """

    def __init__(self, capacity: int = 1):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: deque[T] = deque()
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def send(self, item: T, ctx: Context | None = None):
        with self._cond:
            while True:
                if self._closed:
                    raise ChannelClosed("send on closed channel")
                if ctx is not None and ctx.cancelled:
                    raise Cancelled("send cancelled")
                if len(self._items) < self.capacity:
                    self._items.append(item)
                    self._cond.notify_all()
                    return
                self._cond.wait(POLL_INTERVAL)

    def receive(self, ctx: Context | None = None, timeout: float | None = None) -> T:
        """
        Returns the next item.\n
        Raises ChannelClosed once closed and drained, Cancelled if `ctx` is
        cancelled first, TimeoutError if `timeout` elapses.
        """
        end = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                if ctx is not None and ctx.cancelled:
                    raise Cancelled("receive cancelled")
                if self._items:
                    item = self._items.popleft()
                    self._cond.notify_all()
                    return item
                if self._closed:
                    raise ChannelClosed("channel closed")
                step = POLL_INTERVAL
                if end is not None:
                    left = end - time.monotonic()
                    if left <= 0:
                        raise TimeoutError("receive timed out")
                    step = min(step, left)
                self._cond.wait(step)

    def close(self):
        with self._cond:
            if self._closed:
                raise ChannelClosed("close of closed channel")
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.receive()
            except ChannelClosed:
                return
