"""Progress sinks: where pipeline lifecycle and epoch events are delivered.

The pipeline always talks to exactly one :class:`ProgressSink`.  When no live
observer is attached it gets a :class:`ConsoleSink`; with an observer it gets a
:class:`FanOutSink` of the console and either a :class:`RemoteSink` (raw
channel) or a :class:`GuardedSink` (caller-built sink).
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from functools import partial
from typing import Any, Protocol

from loguru import logger


class EventChannel(Protocol):
    """Anything with a socket.io style ``emit(event, data)``."""

    def emit(self, event: str, data: Any = None) -> Any: ...


class ProgressSink(ABC):
    """Receiver of named pipeline events.

    Implementations must never raise back into the pipeline.
    """

    @abstractmethod
    def log(self, message: str) -> None:
        """A lifecycle message (``"loading images"``, ``"learned"``...)."""

    @abstractmethod
    def progress(self, epoch: int, accuracy: float) -> None:
        """An epoch finished; ``epoch`` is zero-based."""

    @abstractmethod
    def completed(self) -> None:
        """The run finished training."""

    def detail(self, message: str) -> None:
        """Console-level detail that live observers do not receive."""


class NullSink(ProgressSink):
    """Discards every event."""

    def log(self, message: str) -> None:
        pass

    def progress(self, epoch: int, accuracy: float) -> None:
        pass

    def completed(self) -> None:
        pass


class ConsoleSink(ProgressSink):
    """Writes events to the loguru logger."""

    def log(self, message: str) -> None:
        logger.info(message)

    def detail(self, message: str) -> None:
        logger.info(message)

    def progress(self, epoch: int, accuracy: float) -> None:
        logger.info(f"epoch:{epoch} acc:{accuracy:.4f}")

    def completed(self) -> None:
        logger.info("training completed")


class RemoteSink(ProgressSink):
    """Forwards events to a live notification channel.

    Event names match what the browser client listens for: ``log``,
    ``updateProgress`` and ``learnCompleted``.  A channel exposing
    ``connected = False`` is skipped, and any error raised by ``emit`` is
    logged and dropped so a vanished observer cannot abort training.

    ``emit`` may be a coroutine function (an asyncio socket server).  Its
    coroutines are scheduled on ``loop`` without waiting for them, so events
    reach the channel in emission order while training continues.
    """

    def __init__(
        self,
        channel: EventChannel,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.channel = channel
        self.loop = loop

    def _emit(self, event: str, data: Any = None) -> None:
        if not getattr(self.channel, "connected", True):
            logger.debug(f"Observer disconnected, dropping '{event}'")
            return
        try:
            if data is None:
                result = self.channel.emit(event)
            else:
                result = self.channel.emit(event, data)
            if inspect.iscoroutine(result):
                self._schedule(event, result)
        except Exception as e:
            logger.warning(f"Failed to deliver '{event}' to observer: {e}")

    def _schedule(self, event: str, coro: Coroutine[Any, Any, Any]) -> None:
        if self.loop is None or self.loop.is_closed():
            coro.close()
            logger.warning(f"No event loop to deliver '{event}' to async observer")
            return
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(partial(_log_delivery_failure, event))

    def log(self, message: str) -> None:
        self._emit("log", message)

    def progress(self, epoch: int, accuracy: float) -> None:
        self._emit("updateProgress", {"epoch": epoch, "accuracy": accuracy})

    def completed(self) -> None:
        self._emit("learnCompleted")


def _log_delivery_failure(event: str, future: concurrent.futures.Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Failed to deliver '{event}' to observer: {error}")


class GuardedSink(ProgressSink):
    """Wraps a caller-supplied sink so its errors never reach the pipeline."""

    def __init__(self, sink: ProgressSink) -> None:
        self.sink = sink

    def _call(self, event: str, method: Callable[..., None], *args: Any) -> None:
        try:
            method(*args)
        except Exception as e:
            logger.warning(f"Observer failed on '{event}', dropping it: {e!r}")

    def log(self, message: str) -> None:
        self._call("log", self.sink.log, message)

    def detail(self, message: str) -> None:
        self._call("detail", self.sink.detail, message)

    def progress(self, epoch: int, accuracy: float) -> None:
        self._call("progress", self.sink.progress, epoch, accuracy)

    def completed(self) -> None:
        self._call("completed", self.sink.completed)


class FanOutSink(ProgressSink):
    """Delivers each event to every wrapped sink, in order."""

    def __init__(self, *sinks: ProgressSink) -> None:
        self.sinks = list(sinks)

    def log(self, message: str) -> None:
        for sink in self.sinks:
            sink.log(message)

    def detail(self, message: str) -> None:
        for sink in self.sinks:
            sink.detail(message)

    def progress(self, epoch: int, accuracy: float) -> None:
        for sink in self.sinks:
            sink.progress(epoch, accuracy)

    def completed(self) -> None:
        for sink in self.sinks:
            sink.completed()


def make_sink(
    observer: EventChannel | ProgressSink | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> ProgressSink:
    """Build the sink for a run: console always, plus the observer if given.

    ``observer`` may be a raw event channel (wrapped in :class:`RemoteSink`,
    whose async ``emit`` coroutines run on ``loop``) or an already-built
    :class:`ProgressSink` (wrapped in :class:`GuardedSink`).
    """
    console = ConsoleSink()
    if observer is None:
        return console
    if isinstance(observer, ProgressSink):
        return FanOutSink(console, GuardedSink(observer))
    return FanOutSink(console, RemoteSink(observer, loop))
