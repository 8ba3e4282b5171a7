"""A buffer that collects received frames for blocking reads."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator, Optional

from canlink.frame import Frame, Header

log = logging.getLogger(__name__)


class BufferedReader:
    """Buffers frames from an interface; ``max_len`` 0 means unbounded."""

    def __init__(self, enabled: bool = True, max_len: int = 0) -> None:
        self._cond = threading.Condition()
        self._buffer: deque[Frame] = deque()
        self._enabled = enabled
        self._max_len = max_len
        self._listener = None

    def _trim(self) -> None:
        if self._max_len > 0:
            while len(self._buffer) > self._max_len:
                log.error("buffer overflow, discarded oldest message")
                self._buffer.popleft()

    def _handle_frame(self, frame: Frame) -> None:
        with self._cond:
            if self._enabled:
                self._buffer.append(frame)
                self._trim()
                self._cond.notify()
            else:
                log.warning("discarded message")

    def flush(self) -> None:
        with self._cond:
            self._buffer.clear()

    def set_max_len(self, max_len: int) -> None:
        with self._cond:
            self._max_len = max_len
            self._trim()

    def is_enabled(self) -> bool:
        with self._cond:
            return self._enabled

    def set_enabled(self, enabled: bool) -> bool:
        """Enable or disable buffering; returns the previous setting."""
        with self._cond:
            before = self._enabled
            self._enabled = enabled
            return before

    def enable(self) -> None:
        self.set_enabled(True)

    def disable(self) -> None:
        self.set_enabled(False)

    @contextmanager
    def scoped_enable(self) -> Iterator["BufferedReader"]:
        """Enable buffering for the block, then restore the previous setting."""
        before = self.set_enabled(True)
        try:
            yield self
        finally:
            self.set_enabled(before)

    def listen(self, interface, header: Optional[Header] = None) -> None:
        """Collect frames from ``interface``, only those of ``header`` if given."""
        with self._cond:
            if header is None:
                self._listener = interface.create_msg_listener(self._handle_frame)
            else:
                self._listener = interface.create_msg_listener_for(
                    header, self._handle_frame
                )
            self._buffer.clear()

    def read(self, timeout: float) -> Optional[Frame]:
        """Oldest frame, waiting up to ``timeout`` seconds; None on timeout."""
        return self.read_until(time.monotonic() + timeout)

    def read_until(self, deadline: float) -> Optional[Frame]:
        """Oldest frame, waiting until the monotonic ``deadline``; None on timeout."""
        with self._cond:
            while not self._buffer:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)
            return self._buffer.popleft()