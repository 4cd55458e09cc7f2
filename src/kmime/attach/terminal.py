"""Local terminal handling: raw mode, size sampling and the resize queue."""

from __future__ import annotations

import logging
import os
import queue
import termios
import threading
import tty
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_RESIZE_INTERVAL = 0.25


@dataclass(frozen=True)
class TerminalSize:
    """Viewport size in character cells."""

    width: int
    height: int


def get_terminal_size(fd: int) -> TerminalSize | None:
    """Return the size of the terminal behind ``fd``, or None if it is not a terminal."""
    try:
        columns, lines = os.get_terminal_size(fd)
    except OSError:
        return None
    return TerminalSize(width=columns, height=lines)


@contextmanager
def raw_mode(fd: int) -> Iterator[None]:
    """Put the terminal behind ``fd`` in raw mode, restoring it on exit.

    Does nothing when ``fd`` is not a TTY (pipes, redirected input).
    """
    if not os.isatty(fd):
        yield
        return
    old_settings = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


class TerminalSizeQueue:
    """Resize events in the order they were sampled.

    Closing the queue tells the consumer no further sizes will arrive.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[TerminalSize] = queue.SimpleQueue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def push(self, size: TerminalSize) -> None:
        if self.closed:
            return
        self._queue.put(size)

    def close(self) -> None:
        self._closed.set()

    def drain(self) -> list[TerminalSize]:
        """Return every queued size without blocking, oldest first."""
        sizes: list[TerminalSize] = []
        while True:
            try:
                sizes.append(self._queue.get_nowait())
            except queue.Empty:
                return sizes


class ResizeSampler:
    """Polls the viewport size on a fixed interval and queues changes.

    The first sample is pushed synchronously by start() so the remote PTY
    gets a real size before any output is drawn. Terminal resize signals are
    not portable, so polling is used instead.

    Example:
        with ResizeSampler(sizes, lambda: get_terminal_size(fd)):
            ...  # consume sizes.drain()
    """

    def __init__(
        self,
        sizes: TerminalSizeQueue,
        sample: Callable[[], TerminalSize | None],
        interval: float = DEFAULT_RESIZE_INTERVAL,
    ) -> None:
        self._sizes = sizes
        self._sample = sample
        self._interval = interval
        self._last: TerminalSize | None = None
        self._shutdown = threading.Event()
        self._thread = threading.Thread(target=self._run, name="kmime-resize", daemon=True)

    def start(self) -> None:
        self._last = self._sample()
        if self._last is not None:
            self._sizes.push(self._last)
        self._thread.start()

    def stop(self) -> None:
        """Stop sampling and close the queue."""
        self._shutdown.set()
        if self._thread.is_alive():
            self._thread.join(timeout=self._interval * 4)
        self._sizes.close()

    def __enter__(self) -> ResizeSampler:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run(self) -> None:
        while not self._shutdown.wait(self._interval):
            size = self._sample()
            if size is not None and size != self._last:
                logger.debug("Terminal resized to %sx%s", size.width, size.height)
                self._last = size
                self._sizes.push(size)
