# Copyright (c) Syntropy Systems
"""Cooperative cancellation of a running experiment."""

from __future__ import annotations

import logging
import signal
import sys
from threading import Event, Thread
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import FrameType

logger = logging.getLogger(__name__)

DEFAULT_STOP_KEYWORD = "stop"


class CancellationSignal:
    """A stop flag set from outside the experiment loop.

    Setting it never interrupts work in progress. The controller only looks
    at it between features.
    """

    _event: Event

    def __init__(self) -> None:
        self._event = Event()

    def request(self) -> None:
        """Ask the experiment to stop after the current feature."""
        self._event.set()

    def is_set(self) -> bool:
        """Return True if a stop has been requested."""
        return self._event.is_set()


class StopListener:
    """Background reader that requests cancellation on a stop keyword.

    Reads lines from ``stream`` until EOF. A line equal to the keyword,
    ignoring case and surrounding whitespace, sets the signal; anything else
    is ignored.
    """

    _cancel: CancellationSignal
    _stream: IO[str]
    _keyword: str
    _on_stop: Callable[[], None] | None
    _thread: Thread | None

    def __init__(
        self,
        cancel: CancellationSignal,
        stream: IO[str] | None = None,
        keyword: str = DEFAULT_STOP_KEYWORD,
        on_stop: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the listener.

        Args:
            cancel: Signal to set when the keyword is read
            stream: Line source (defaults to stdin)
            keyword: Stop keyword, matched case-insensitively
            on_stop: Called once when the keyword first arrives

        """
        self._cancel = cancel
        self._stream = stream if stream is not None else sys.stdin
        self._keyword = keyword.strip().lower()
        self._on_stop = on_stop
        self._thread = None

    def start(self) -> None:
        """Start listening in a daemon thread."""
        if self._thread is not None:
            return
        self._thread = Thread(target=self._listen, name="knockout-stop", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the listener to reach EOF."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _listen(self) -> None:
        for line in self._stream:
            if line.strip().lower() != self._keyword:
                continue
            if self._cancel.is_set():
                continue
            self._cancel.request()
            logger.info("Stop requested from input")
            if self._on_stop is not None:
                self._on_stop()


def install_signal_handlers(
    cancel: CancellationSignal,
    on_stop: Callable[[], None] | None = None,
) -> Callable[[], None]:
    """Route SIGINT/SIGTERM to the cancellation signal.

    Ctrl-C then finishes the current feature instead of killing the process
    with a plugin still disabled. A second Ctrl-C goes to the previous
    handler, so a hung run can still be interrupted. Returns a function that
    puts the previous handlers back.
    """

    def _handler(signum: int, frame: FrameType | None) -> None:  # noqa: ARG001
        logger.info("Received signal %d, stopping after current feature", signum)
        if signum == signal.SIGINT:
            _ = signal.signal(signal.SIGINT, _previous(signal.SIGINT))
        first = not cancel.is_set()
        cancel.request()
        if first and on_stop is not None:
            on_stop()

    previous = {
        signum: signal.signal(signum, _handler)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }

    def _previous(signum: int) -> signal.Handlers | Callable[[int, FrameType | None], object]:
        handler = previous[signum]
        return handler if handler is not None else signal.SIG_DFL

    def _restore() -> None:
        for signum in previous:
            _ = signal.signal(signum, _previous(signum))

    return _restore
