"""The "thinking" animation shown while a turn is in flight."""

import threading

from echoy.channel import Channel, ChannelClosed
from echoy.context import Context
from echoy.errors import Cancelled

FRAMES = (".  ", ".. ", "...")


class ThinkingIndicator:
    """
    Cooperative ticker that re-renders a short animation until stopped.

    The stop channel holds one signal and is sent to at most once; `stop()`
    may be called again safely. The ticker also exits when `ctx` is cancelled.
    """

    def __init__(self, display, interval: float = 0.3, ctx: Context | None = None):
        self.display = display
        self.interval = interval
        self.ctx = ctx
        self.stop_signal: Channel[bool] = Channel(capacity=1)
        self.frames_rendered = 0
        self._stopped = False
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def start(self):
        if self._thread is not None:
            return  # already running
        self._thread = threading.Thread(
            target=self._tick, name="echoy-thinking", daemon=True
        )
        self._thread.start()

    def _tick(self):
        i = 0
        while True:
            if self.ctx is not None and self.ctx.cancelled:
                break
            self.display.thinking(f"Thinking{FRAMES[i % len(FRAMES)]}")
            self.frames_rendered += 1
            i += 1
            try:
                self.stop_signal.receive(self.ctx, timeout=self.interval)
                break
            except TimeoutError:
                continue
            except (Cancelled, ChannelClosed):
                break
        self.display.clear_thinking()

    def stop(self):
        """Signals the ticker once and waits for it to clear its line."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self.stop_signal.send(True)
        self.stop_signal.close()
        if self._thread is not None:
            self._thread.join()
