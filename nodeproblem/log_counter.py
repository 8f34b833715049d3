"""Counts logs matching a pattern up to the moment counting starts."""

from __future__ import annotations

import queue
from datetime import datetime
from typing import Callable, Optional

from nodeproblem.log_buffer import LogBuffer
from nodeproblem.types import Log

BUFFER_SIZE = 1000
DEFAULT_TIMEOUT = 1.0


class LogChannelClosedError(RuntimeError):
    """Raised when the log queue is closed while counting."""


def _now() -> datetime:
    return datetime.now().astimezone()


class LogCounter:
    """Counts how many times a pattern matches the logs arriving on a queue."""

    def __init__(
        self,
        log_queue: "queue.Queue[Optional[Log]]",
        pattern: str,
        clock: Optional[Callable[[], datetime]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.log_queue = log_queue
        self.pattern = pattern
        self.clock = clock or _now
        self.timeout = timeout
        self._buffer = LogBuffer(BUFFER_SIZE)

    def count(self) -> int:
        """Count matches among logs older than now; stop when logs dry up."""
        start = self.clock()
        count = 0
        while True:
            try:
                log = self.log_queue.get(timeout=self.timeout)
            except queue.Empty:
                return count
            if log is None:
                raise LogChannelClosedError("log channel closed unexpectedly")
            # Only logs up to the start are counted, or this would never end.
            if log.timestamp is not None and start < log.timestamp:
                return count
            self._buffer.push(log)
            if self._buffer.match(self.pattern):
                count += 1