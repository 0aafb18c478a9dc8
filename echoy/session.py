"""The interactive chat loop."""

import logging
from enum import Enum
from typing import Callable

from echoy.chat_service import ChatService
from echoy.context import Context
from echoy.errors import (
    GenerationError,
    HistoryWriteError,
    InputError,
    StorageError,
)
from echoy.globals import log_exception, root_prompt
from echoy.history import HistoryStore
from echoy.indicator import ThinkingIndicator
from echoy.tokens import TokenCounter
from echoy.ui import Display

EXIT_COMMAND = "exit"
CLEAR_COMMAND = "clear"


class SessionState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    DISPATCH = "dispatch"
    PROCESSING = "processing"
    SCREEN_CLEAR = "screen_clear"
    EXIT_REQUESTED = "exit_requested"


class Session:
    """
    One interactive conversation.

    - Reads a line, recognizes `exit` and `clear`, otherwise runs a turn
    - Shows a thinking indicator while the turn is in flight
    - Renders blocking replies whole and streamed replies as they arrive
    """

    def __init__(
        self,
        config,
        display: Display,
        chat_service: ChatService,
        history: HistoryStore,
        read_line: Callable[[], str] | None = None,
        token_counter: TokenCounter | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.display = display
        self.chat_service = chat_service
        self.history = history
        self.read_line = read_line or (lambda: root_prompt(self.config.user_name))
        self.token_counter = token_counter or TokenCounter()
        self.logger = logger or logging.getLogger(__name__)
        self.state = SessionState.AWAITING_INPUT

        try:
            chat = history.create_session()
        except Exception as e:
            raise StorageError(f"error creating chat session: {e}") from e
        self._session_id = chat.session_id

    @property
    def session_id(self):
        return self._session_id

    # <~~LOOP~~>
    def start(self, ctx: Context | None = None):
        """
        Runs the loop until `exit`.\n
        Raises InputError if the input source fails or reaches end of stream.
        """
        ctx = ctx or Context()
        self.display.welcome(self._session_id, self.config.assistant_name, self.config.model)

        while True:
            self.state = SessionState.AWAITING_INPUT
            try:
                user_input = self._read_input()
            except KeyboardInterrupt:
                self.state = SessionState.EXIT_REQUESTED
            else:
                self.state = SessionState.DISPATCH
                self.state = self.dispatch(ctx, user_input)

            if self.state is SessionState.EXIT_REQUESTED:
                self.display.info("Ending chat session. Goodbye")
                return

    def _read_input(self) -> str:
        try:
            return self.read_line().strip()
        except (EOFError, OSError) as e:
            raise InputError(f"error reading input: {e or 'end of input'}") from e

    def dispatch(self, ctx: Context, user_input: str) -> SessionState:
        """Routes one line of input; returns the state the loop lands in."""
        command = user_input.strip().lower()
        if command == EXIT_COMMAND:
            return SessionState.EXIT_REQUESTED
        if command == CLEAR_COMMAND:
            self.state = SessionState.SCREEN_CLEAR
            self.display.clear()
            return SessionState.AWAITING_INPUT
        if not command:  # Loop back if the user inputs nothing
            return SessionState.AWAITING_INPUT

        self.state = SessionState.PROCESSING
        self.process_message(ctx, user_input)
        return SessionState.AWAITING_INPUT

    # <~~TURN~~>
    def process_message(self, ctx: Context, text: str):
        """Runs one turn. Errors are rendered, never raised."""
        turn_ctx = ctx.child()
        indicator = ThinkingIndicator(
            self.display, interval=self.config.thinking_interval, ctx=ctx
        )
        indicator.start()
        try:
            if self.config.streaming:
                ok = self._process_streaming(turn_ctx, text, indicator)
            else:
                ok = self._process_blocking(turn_ctx, text, indicator)
        except KeyboardInterrupt:
            # Abandon the turn; the relay sees the cancel and persists nothing
            turn_ctx.cancel()
            indicator.stop()
            self.display.end_stream()
            self.display.subtle("Turn canceled.")
            return
        except HistoryWriteError as e:
            indicator.stop()
            log_exception(e, "History write failed", self.logger)
            if e.reply is not None:
                self.display.render_reply(e.reply.text)
            self.display.error_panel("HISTORY ERROR", f"{e}")
            return
        except GenerationError as e:
            indicator.stop()
            log_exception(e, "Generation failed", self.logger)
            self.display.error_panel("API ERROR", f"{e}")
            return
        finally:
            indicator.stop()
            turn_ctx.cancel()

        if ok:
            self._spawn_status_panel()

    def _process_blocking(self, ctx: Context, text: str, indicator) -> bool:
        response = self.chat_service.chat(ctx, self._session_id, text)
        indicator.stop()
        self.display.render_reply(response.answer)
        return True

    def _process_streaming(self, ctx: Context, text: str, indicator) -> bool:
        results = self.chat_service.chat_streaming(ctx, self._session_id, text)
        stream_error = None
        for increment in results:
            if increment.error is not None:
                stream_error = increment.error
                continue
            if increment.text:
                self.display.stream_fragment(increment.text)
        indicator.stop()
        self.display.end_stream()
        if stream_error is not None:
            self.display.error_panel("STREAM ERROR", f"{stream_error}")
            return False
        return True

    def _spawn_status_panel(self):
        if not self.config.show_status:
            return
        chat = self.history.get_session(self._session_id)
        self.display.status_panel(chat.count_turns(), self.token_counter.count(chat))
