"""Cancellation and deadline handle passed through every blocking call."""

import threading
import time


class Context:
    """
    Cancellable context with an optional deadline.

    Cancelling a context cancels every child created from it. A context whose
    deadline has passed reports itself as cancelled.
    """

    def __init__(self, timeout: float | None = None, parent: "Context | None" = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list[Context] = []
        self._parent = parent
        self.deadline: float | None = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout
        if parent is not None:
            if parent.deadline is not None and (
                self.deadline is None or parent.deadline < self.deadline
            ):
                self.deadline = parent.deadline
            parent._adopt(self)

    def _adopt(self, child: "Context"):
        with self._lock:
            if not self._event.is_set():
                self._children.append(child)
                return
        child.cancel()

    def _remove(self, child: "Context"):
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def child(self, timeout: float | None = None) -> "Context":
        """Returns a new context cancelled together with this one."""
        return Context(timeout=timeout, parent=self)

    def cancel(self):
        """Cancels this context and all of its children, then detaches it from its parent."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children, self._children = self._children, []
        for c in children:
            c.cancel()
        if self._parent is not None:
            self._parent._remove(self)
            self._parent = None

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel()
            return True
        return False

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Blocks until cancelled or `timeout` elapses. Returns `cancelled`."""
        end = None if timeout is None else time.monotonic() + timeout
        while not self.cancelled:
            steps = [self.remaining()]
            if end is not None:
                steps.append(end - time.monotonic())
            steps = [s for s in steps if s is not None]
            step = min(steps) if steps else None
            if step is not None and step <= 0:
                break
            self._event.wait(step)
        return self.cancelled
