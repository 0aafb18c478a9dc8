"""Conversation history: message types and the session store."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from echoy.errors import NotFoundError


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Message:
    """One turn of dialogue. Immutable once created."""

    role: Role
    text: str
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        """OpenAI-style message dict"""
        return {"role": self.role.value, "content": self.text}


@dataclass(frozen=True, slots=True)
class ChatHistory:
    """Read-only snapshot of one session's history"""

    session_id: uuid.UUID
    created_at: datetime
    messages: tuple[Message, ...] = ()

    def count_turns(self) -> int:
        return sum(1 for m in self.messages if m.role is Role.USER)


class HistoryStore:
    """
    Append-only per-session message log.

    Implementations must make `append_message` atomic with respect to readers.
    `create_session` may raise StorageError; lookups raise NotFoundError.
    """

    def create_session(self) -> ChatHistory:
        raise NotImplementedError

    def append_message(self, session_id: uuid.UUID, message: Message) -> None:
        raise NotImplementedError

    def get_session(self, session_id: uuid.UUID) -> ChatHistory:
        raise NotImplementedError

    def list_sessions(self) -> list[ChatHistory]:
        raise NotImplementedError

    def delete_session(self, session_id: uuid.UUID) -> bool:
        raise NotImplementedError


class _SessionLog:
    __slots__ = ("session_id", "created_at", "messages", "lock")

    def __init__(self, session_id: uuid.UUID):
        self.session_id = session_id
        self.created_at = utc_now()
        self.messages: list[Message] = []
        self.lock = threading.Lock()

    def snapshot(self) -> ChatHistory:
        with self.lock:
            messages = tuple(self.messages)
        return ChatHistory(self.session_id, self.created_at, messages)


class InMemoryHistoryStore(HistoryStore):
    """Process-lifetime history store. One lock per session, one for the index."""

    def __init__(self):
        self._sessions: dict[uuid.UUID, _SessionLog] = {}
        self._lock = threading.Lock()

    def _log(self, session_id: uuid.UUID) -> _SessionLog:
        with self._lock:
            log = self._sessions.get(session_id)
        if log is None:
            raise NotFoundError(f"No chat session found: {session_id}")
        return log

    def create_session(self) -> ChatHistory:
        log = _SessionLog(uuid.uuid4())
        with self._lock:
            self._sessions[log.session_id] = log
        return log.snapshot()

    def append_message(self, session_id: uuid.UUID, message: Message) -> None:
        log = self._log(session_id)
        with log.lock:
            log.messages.append(message)

    def get_session(self, session_id: uuid.UUID) -> ChatHistory:
        return self._log(session_id).snapshot()

    def list_sessions(self) -> list[ChatHistory]:
        with self._lock:
            logs = list(self._sessions.values())
        return sorted((log.snapshot() for log in logs), key=lambda h: h.created_at)

    def delete_session(self, session_id: uuid.UUID) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None
