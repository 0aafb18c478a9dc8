"""The thinking ticker: renders until stopped, signalled exactly once."""

import time

import pytest

from conftest import RecordingDisplay
from echoy.channel import ChannelClosed
from echoy.context import Context
from echoy.indicator import ThinkingIndicator


def test_renders_frames_until_stopped():
    display = RecordingDisplay()
    indicator = ThinkingIndicator(display, interval=0.01)

    indicator.start()
    time.sleep(0.08)
    indicator.stop()
    rendered = len(display.frames)
    time.sleep(0.05)

    assert rendered >= 1
    assert len(display.frames) == rendered
    assert display.frames[0] == "Thinking.  "
    assert set(display.frames) <= {"Thinking.  ", "Thinking.. ", "Thinking..."}


def test_stop_signal_is_sent_exactly_once():
    indicator = ThinkingIndicator(RecordingDisplay(), interval=0.01)
    indicator.start()

    indicator.stop()
    indicator.stop()

    # The ticker consumed the only signal; nothing is left to drain
    with pytest.raises(ChannelClosed):
        indicator.stop_signal.receive(timeout=0.5)


def test_stop_without_start_leaves_one_signal():
    indicator = ThinkingIndicator(RecordingDisplay())

    indicator.stop()
    indicator.stop()

    assert indicator.stop_signal.receive(timeout=0.5) is True
    with pytest.raises(ChannelClosed):
        indicator.stop_signal.receive(timeout=0.5)


def test_ticker_exits_when_session_is_cancelled():
    ctx = Context()
    indicator = ThinkingIndicator(RecordingDisplay(), interval=0.01, ctx=ctx)
    indicator.start()

    ctx.cancel()
    indicator._thread.join(timeout=1)

    assert not indicator._thread.is_alive()
    indicator.stop()
