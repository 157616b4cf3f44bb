"""Tests for the progress sinks."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

import pytest
from conftest import RecordingSink
from loguru import logger

from transfer_training.progress import (
    ConsoleSink,
    FanOutSink,
    GuardedSink,
    NullSink,
    RemoteSink,
    make_sink,
)


class _FakeChannel:
    """Socket-like channel recording emits."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.emitted: list[tuple[Any, ...]] = []

    def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event,) if data is None else (event, data))


class _ExplodingChannel:
    def emit(self, event: str, data: Any = None) -> None:
        raise ConnectionResetError("socket closed")


class _AsyncChannel:
    """Channel whose ``emit`` is a coroutine function, like an asyncio server."""

    def __init__(self) -> None:
        self.emitted: list[tuple[Any, ...]] = []

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event,) if data is None else (event, data))


class _FlakySink(RecordingSink):
    def progress(self, epoch: int, accuracy: float) -> None:
        raise ConnectionResetError("observer went away")


@pytest.fixture()
def captured_logs() -> Iterator[list[str]]:
    messages: list[str] = []
    handler_id = logger.add(
        lambda m: messages.append(m.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


class TestRemoteSink:
    def test_event_names(self) -> None:
        channel = _FakeChannel()
        sink = RemoteSink(channel)
        sink.log("loading images")
        sink.detail("3 files found")
        sink.progress(4, 0.5)
        sink.completed()
        assert channel.emitted == [
            ("log", "loading images"),
            ("updateProgress", {"epoch": 4, "accuracy": 0.5}),
            ("learnCompleted",),
        ]

    def test_disconnected_channel_is_skipped(self) -> None:
        channel = _FakeChannel(connected=False)
        sink = RemoteSink(channel)
        sink.log("x")
        sink.progress(0, 1.0)
        sink.completed()
        assert channel.emitted == []

    def test_emit_errors_are_dropped(self, captured_logs: list[str]) -> None:
        sink = RemoteSink(_ExplodingChannel())
        sink.log("x")
        sink.progress(0, 0.1)
        sink.completed()
        assert any("socket closed" in m for m in captured_logs)

    def test_async_emit_runs_on_loop(self) -> None:
        channel = _AsyncChannel()

        async def drive() -> None:
            sink = RemoteSink(channel, asyncio.get_running_loop())
            await asyncio.to_thread(sink.log, "loading images")
            await asyncio.to_thread(sink.progress, 0, 0.5)
            await asyncio.to_thread(sink.completed)
            for _ in range(3):
                await asyncio.sleep(0)

        asyncio.run(drive())
        assert channel.emitted == [
            ("log", "loading images"),
            ("updateProgress", {"epoch": 0, "accuracy": 0.5}),
            ("learnCompleted",),
        ]

    def test_async_emit_without_loop_is_dropped(
        self, captured_logs: list[str]
    ) -> None:
        channel = _AsyncChannel()
        RemoteSink(channel).completed()
        assert channel.emitted == []
        assert any("No event loop" in m for m in captured_logs)


class TestConsoleSink:
    def test_writes_to_logger(self, captured_logs: list[str]) -> None:
        sink = ConsoleSink()
        sink.log("loading model")
        sink.detail("3 files found")
        sink.progress(2, 0.25)
        sink.completed()
        assert "loading model" in captured_logs
        assert "3 files found" in captured_logs
        assert "epoch:2 acc:0.2500" in captured_logs
        assert "training completed" in captured_logs
        assert not any("learned" in m for m in captured_logs)


class TestFanOutAndFactory:
    def test_fan_out_preserves_order(self) -> None:
        first, second = RecordingSink(), RecordingSink()
        sink = FanOutSink(first, second)
        sink.log("a")
        sink.detail("b")
        sink.progress(0, 0.0)
        sink.completed()
        assert first.events == second.events
        kinds = [e[0] for e in first.events]
        assert kinds == ["log", "detail", "progress", "completed"]

    def test_null_sink_accepts_everything(self) -> None:
        sink = NullSink()
        sink.log("a")
        sink.detail("b")
        sink.progress(0, 0.0)
        sink.completed()

    def test_make_sink_without_observer_is_console(self) -> None:
        assert isinstance(make_sink(None), ConsoleSink)

    def test_make_sink_wraps_channel(self) -> None:
        channel = _FakeChannel()
        sink = make_sink(channel)
        assert isinstance(sink, FanOutSink)
        assert isinstance(sink.sinks[0], ConsoleSink)
        assert isinstance(sink.sinks[1], RemoteSink)
        sink.completed()
        assert channel.emitted == [("learnCompleted",)]

    def test_make_sink_accepts_progress_sink(self) -> None:
        recorder = RecordingSink()
        sink = make_sink(recorder)
        sink.log("hello")
        assert recorder.events == [("log", "hello")]

    def test_make_sink_guards_progress_sink(self, captured_logs: list[str]) -> None:
        flaky = _FlakySink()
        sink = make_sink(flaky)
        assert isinstance(sink, FanOutSink)
        assert isinstance(sink.sinks[1], GuardedSink)
        sink.progress(0, 0.5)
        sink.completed()
        assert flaky.events == [("completed", None)]
        assert any("observer went away" in m for m in captured_logs)
