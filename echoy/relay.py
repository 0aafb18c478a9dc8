"""
Streaming relay: forwards provider increments to the caller while
accumulating the full reply for history.
"""

import logging
import threading
import uuid
from enum import Enum

from echoy.channel import Channel, ChannelClosed
from echoy.context import Context
from echoy.errors import Cancelled
from echoy.globals import log_exception
from echoy.history import HistoryStore, Message, Role
from echoy.llm import StreamIncrement


class PartialStreamPolicy(str, Enum):
    """What to do with text accumulated before a mid-stream error"""

    DISCARD = "discard"
    PERSIST = "persist"


class StreamingRelay:
    """
    One relay per streaming call.

    Owns `result`: it is the only writer and closes it exactly once, on every
    exit path. At most one assistant message is appended per relay.
    """

    def __init__(
        self,
        ctx: Context,
        source: Channel[StreamIncrement],
        history: HistoryStore,
        session_id: uuid.UUID,
        partial_policy: PartialStreamPolicy = PartialStreamPolicy.DISCARD,
        logger: logging.Logger | None = None,
    ):
        self.ctx = ctx
        self.source = source
        self.history = history
        self.session_id = session_id
        self.partial_policy = PartialStreamPolicy(partial_policy)
        self.logger = logger or logging.getLogger(__name__)
        self.result: Channel[StreamIncrement] = Channel()
        self.persisted: Message | None = None
        self.persist_failures: int = 0
        self._buffer: list[str] = []
        self._thread: threading.Thread | None = None

    def start(self) -> Channel[StreamIncrement]:
        """Launches the relay thread and returns the caller-visible channel."""
        self._thread = threading.Thread(
            target=self.run, name=f"echoy-relay-{self.session_id}", daemon=True
        )
        self._thread.start()
        return self.result

    def join(self, timeout: float | None = None):
        if self._thread:
            self._thread.join(timeout)

    def run(self):
        try:
            self._relay()
        except Exception as e:
            # Anything escaping here would kill the thread silently
            log_exception(e, f"Relay failed for session {self.session_id}", self.logger)
        finally:
            self.result.close()

    def _relay(self):
        while True:
            try:
                increment = self.source.receive(self.ctx)
            except Cancelled:
                self.logger.info(f"Stream abandoned for session {self.session_id}")
                return
            except ChannelClosed:
                if self.ctx.cancelled:
                    return
                # Provider hung up without a done marker
                self.logger.warning(
                    f"Stream for session {self.session_id} ended without completion"
                )
                self._persist()
                return

            if increment.error is not None:
                self.logger.error(
                    f"Stream error for session {self.session_id}: {increment.error}"
                )
                if not self._forward(increment):
                    return
                if self.partial_policy is PartialStreamPolicy.PERSIST:
                    self._persist()
                return

            self._buffer.append(increment.text)
            if not self._forward(increment):
                return
            if increment.done:
                self._persist()
                return

    def _forward(self, increment: StreamIncrement) -> bool:
        """Sends to the result channel. False if the caller cancelled first."""
        try:
            self.result.send(increment, self.ctx)
        except Cancelled:
            self.logger.info(f"Stream abandoned for session {self.session_id}")
            return False
        return True

    def _persist(self):
        message = Message(Role.ASSISTANT, "".join(self._buffer))
        try:
            self.history.append_message(self.session_id, message)
        except Exception as e:
            # The caller already returned; logging is the only path left
            self.persist_failures += 1
            log_exception(
                e,
                f"Failed to save streamed response for session {self.session_id}",
                self.logger,
            )
            return
        self.persisted = message
