"""Orchestrates one user turn: persist, generate, persist."""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from echoy.channel import Channel
from echoy.context import Context
from echoy.errors import GenerationError, HistoryWriteError
from echoy.history import ChatHistory, HistoryStore, Message, Role
from echoy.llm import GenerationClient, StreamIncrement
from echoy.relay import PartialStreamPolicy, StreamingRelay


class ContextPolicy(str, Enum):
    """Which messages are sent to the backend for a turn"""

    TURN = "turn"  # only the current user message
    TRANSCRIPT = "transcript"  # the whole session so far


@dataclass(frozen=True, slots=True)
class ChatResponse:
    session_id: uuid.UUID
    answer: str
    input_tokens: int = 0
    output_tokens: int = 0


class ChatService:
    """Chat in blocking or streaming mode over a generation client."""

    def __init__(
        self,
        generator: GenerationClient,
        history: HistoryStore,
        context_policy: ContextPolicy = ContextPolicy.TURN,
        partial_policy: PartialStreamPolicy = PartialStreamPolicy.DISCARD,
        logger: logging.Logger | None = None,
    ):
        self.generator = generator
        self.history = history
        self.context_policy = ContextPolicy(context_policy)
        self.partial_policy = PartialStreamPolicy(partial_policy)
        self.logger = logger or logging.getLogger(__name__)

    # <~~HELPERS~~>
    def _ensure_session(self, session_id: uuid.UUID | None) -> uuid.UUID:
        if session_id is not None:
            return session_id
        try:
            return self.history.create_session().session_id
        except Exception as e:
            raise HistoryWriteError(f"failed to create chat session: {e}") from e

    def _append_user(self, session_id: uuid.UUID, text: str) -> Message:
        message = Message(Role.USER, text)
        try:
            self.history.append_message(session_id, message)
        except Exception as e:
            raise HistoryWriteError(
                f"failed to add message to chat history: {e}"
            ) from e
        return message

    def _context_for(self, session_id: uuid.UUID, message: Message) -> list[Message]:
        if self.context_policy is ContextPolicy.TRANSCRIPT:
            return list(self.history.get_session(session_id).messages)
        return [message]

    # <~~CHAT~~>
    def chat(
        self, ctx: Context, session_id: uuid.UUID | None, text: str
    ) -> ChatResponse:
        """Single blocking turn. Raises HistoryWriteError or GenerationError."""
        session_id = self._ensure_session(session_id)
        message = self._append_user(session_id, text)

        try:
            reply = self.generator.generate(ctx, self._context_for(session_id, message))
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"failed to generate response: {e}") from e

        try:
            self.history.append_message(session_id, Message(Role.ASSISTANT, reply.text))
        except Exception as e:
            raise HistoryWriteError(
                f"failed to add response to chat history: {e}", reply=reply
            ) from e

        return ChatResponse(
            session_id=session_id,
            answer=reply.text,
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
        )

    def chat_streaming(
        self, ctx: Context, session_id: uuid.UUID | None, text: str
    ) -> Channel[StreamIncrement]:
        """
        Starts a streaming turn and returns the relay's channel immediately.

        The assistant message is appended by the relay once the stream ends.
        """
        session_id = self._ensure_session(session_id)
        message = self._append_user(session_id, text)

        try:
            source = self.generator.generate_stream(
                ctx, self._context_for(session_id, message)
            )
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(
                f"failed to generate streaming response: {e}"
            ) from e

        relay = StreamingRelay(
            ctx,
            source,
            self.history,
            session_id,
            partial_policy=self.partial_policy,
            logger=self.logger,
        )
        return relay.start()

    # <~~HISTORY ACCESS~~>
    def get_chat_history(self, session_id: uuid.UUID) -> ChatHistory:
        return self.history.get_session(session_id)

    def list_chat_histories(self) -> list[ChatHistory]:
        return self.history.list_sessions()
