"""Shared fakes: a scripted generation backend, a recording display, a flaky store."""

import threading

import pytest

from echoy.channel import Channel
from echoy.config import Config
from echoy.history import InMemoryHistoryStore, Role
from echoy.llm import AssistantReply, GenerationClient, StreamIncrement
from echoy.ui import Display


class FakeGenerator(GenerationClient):
    """Returns canned replies and records every message list it was given."""

    def __init__(self, reply="Hi there", increments=None, error=None, close_source=True):
        self.reply = reply
        self.increments = increments or []
        self.error = error
        self.close_source = close_source
        self.calls = []
        self.source: Channel | None = None
        self._lock = threading.Lock()

    def generate(self, ctx, messages):
        with self._lock:
            self.calls.append(list(messages))
        if self.error:
            raise self.error
        text = self.reply(messages) if callable(self.reply) else self.reply
        return AssistantReply(text, input_tokens=3, output_tokens=2)

    def generate_stream(self, ctx, messages):
        with self._lock:
            self.calls.append(list(messages))
        if self.error:
            raise self.error
        self.source = Channel(capacity=len(self.increments) + 1)
        for inc in self.increments:
            self.source.send(inc)
        if self.close_source:
            self.source.close()
        return self.source


class RecordingDisplay(Display):
    """Keeps everything it is asked to render."""

    def __init__(self):
        self.lines = []
        self.clears = 0
        self.frames = []
        self.fragments = []
        self.replies = []
        self.errors = []
        self.statuses = []
        self.welcomed = []

    def write(self, level, text, end="\n"):
        self.lines.append((level, text, end))

    def clear(self):
        self.clears += 1

    def welcome(self, session_id, assistant_name, model):
        self.welcomed.append(session_id)

    def thinking(self, frame):
        self.frames.append(frame)

    def clear_thinking(self):
        pass

    def stream_fragment(self, text):
        self.fragments.append(text)

    def end_stream(self):
        pass

    def render_reply(self, text):
        self.replies.append(text)

    def error_panel(self, title, detail):
        self.errors.append((title, detail))

    def status_panel(self, turns, tokens):
        self.statuses.append((turns, tokens))


class FlakyStore(InMemoryHistoryStore):
    """Fails appends for the given roles."""

    def __init__(self, fail_roles=()):
        super().__init__()
        self.fail_roles = set(fail_roles)

    def append_message(self, session_id, message):
        if message.role in self.fail_roles:
            raise OSError("disk full")
        super().append_message(session_id, message)


def scripted_input(*lines):
    """A read_line callable that raises EOFError once the script runs out."""
    it = iter(lines)

    def read_line():
        try:
            return next(it)
        except StopIteration:
            raise EOFError

    return read_line


def hello_stream():
    return [
        StreamIncrement("Hel"),
        StreamIncrement("lo"),
        StreamIncrement("!", done=True),
    ]


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def display():
    return RecordingDisplay()


@pytest.fixture
def config():
    cfg = Config()
    cfg.thinking_interval = 0.01
    cfg.show_status = False
    return cfg


def roles(history):
    return [m.role for m in history.messages]


USER, ASSISTANT = Role.USER, Role.ASSISTANT
