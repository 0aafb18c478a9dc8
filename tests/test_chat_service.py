"""Blocking chat turns: persistence order, error taxonomy and context policy."""

import threading

import pytest

from conftest import ASSISTANT, USER, FakeGenerator, FlakyStore, roles
from echoy.chat_service import ChatResponse, ChatService, ContextPolicy
from echoy.context import Context
from echoy.errors import GenerationError, HistoryWriteError


@pytest.mark.parametrize("turns", [1, 2, 5])
def test_n_turns_produce_alternating_history(store, turns):
    service = ChatService(FakeGenerator(), store)
    sid = store.create_session().session_id

    for i in range(turns):
        service.chat(Context(), sid, f"question {i}")

    history = store.get_session(sid)
    assert len(history.messages) == 2 * turns
    assert roles(history) == [USER, ASSISTANT] * turns


def test_chat_returns_reply_and_usage(store):
    service = ChatService(FakeGenerator(reply="Hello!"), store)
    sid = store.create_session().session_id

    response = service.chat(Context(), sid, "hi")

    assert response == ChatResponse(sid, "Hello!", input_tokens=3, output_tokens=2)
    assert store.get_session(sid).messages[-1].text == "Hello!"


def test_user_append_failure_skips_generation():
    store = FlakyStore(fail_roles={USER})
    generator = FakeGenerator()
    service = ChatService(generator, store)
    sid = store.create_session().session_id

    with pytest.raises(HistoryWriteError) as exc:
        service.chat(Context(), sid, "hi")

    assert exc.value.reply is None
    assert generator.calls == []


def test_generation_failure_keeps_only_user_message(store):
    service = ChatService(FakeGenerator(error=GenerationError("backend down")), store)
    sid = store.create_session().session_id

    with pytest.raises(GenerationError):
        service.chat(Context(), sid, "hi")

    assert roles(store.get_session(sid)) == [USER]


def test_unexpected_backend_exception_is_wrapped(store):
    service = ChatService(FakeGenerator(error=RuntimeError("boom")), store)
    sid = store.create_session().session_id

    with pytest.raises(GenerationError) as exc:
        service.chat(Context(), sid, "hi")
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_assistant_append_failure_carries_reply():
    """Got an answer, couldn't save it."""
    store = FlakyStore(fail_roles={ASSISTANT})
    service = ChatService(FakeGenerator(reply="saved?"), store)
    sid = store.create_session().session_id

    with pytest.raises(HistoryWriteError) as exc:
        service.chat(Context(), sid, "hi")

    assert exc.value.reply is not None
    assert exc.value.reply.text == "saved?"


def test_turn_policy_sends_only_current_message(store):
    generator = FakeGenerator()
    service = ChatService(generator, store, context_policy=ContextPolicy.TURN)
    sid = store.create_session().session_id

    service.chat(Context(), sid, "one")
    service.chat(Context(), sid, "two")

    assert [[m.text for m in call] for call in generator.calls] == [["one"], ["two"]]


def test_transcript_policy_sends_full_history(store):
    generator = FakeGenerator(reply="ok")
    service = ChatService(generator, store, context_policy="transcript")
    sid = store.create_session().session_id

    service.chat(Context(), sid, "one")
    service.chat(Context(), sid, "two")

    assert [m.text for m in generator.calls[-1]] == ["one", "ok", "two"]


def test_missing_session_id_creates_a_session(store):
    service = ChatService(FakeGenerator(), store)

    response = service.chat(Context(), None, "hi")

    assert len(store.get_session(response.session_id).messages) == 2
    assert [h.session_id for h in service.list_chat_histories()] == [response.session_id]
    assert service.get_chat_history(response.session_id).count_turns() == 1


def test_concurrent_chats_on_two_sessions(store):
    generator = FakeGenerator(reply=lambda messages: f"re: {messages[-1].text}")
    service = ChatService(generator, store)
    sessions = [store.create_session().session_id for _ in range(2)]

    def talk(sid, tag):
        for i in range(50):
            service.chat(Context(), sid, f"{tag}{i}")

    threads = [
        threading.Thread(target=talk, args=(sid, tag))
        for sid, tag in zip(sessions, ("a", "b"))
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for sid, tag in zip(sessions, ("a", "b")):
        texts = [m.text for m in store.get_session(sid).messages]
        expected = []
        for i in range(50):
            expected += [f"{tag}{i}", f"re: {tag}{i}"]
        assert texts == expected
