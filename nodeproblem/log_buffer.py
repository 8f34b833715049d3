"""Ring buffer of log lines that supports multi-line regular expression matching."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from nodeproblem.types import Log


def concat_logs(messages: Iterable[str]) -> str:
    """Join log messages into one newline-separated string."""
    return "\n".join(messages)


class LogBuffer:
    """Keeps the last ``max_lines`` logs and matches patterns against them.

    The buffer size is also the largest number of lines a pattern can span.
    """

    def __init__(self, max_lines: int) -> None:
        if max_lines < 1:
            raise ValueError("log buffer needs at least one line")
        self._max = max_lines
        self._buffer: list[Optional[Log]] = [None] * max_lines
        self._messages: list[str] = [""] * max_lines
        self._current = 0

    def push(self, log: Log) -> None:
        """Add a log, dropping the oldest one when the buffer is full."""
        slot = self._current % self._max
        self._buffer[slot] = log
        self._messages[slot] = log.message
        self._current += 1

    def match(self, expr: str) -> list[Log]:
        """Return the logs matched by ``expr``, which must match up to the last line."""
        text = str(self)
        found = re.search(expr + r"\Z", text)
        if found is None:
            return []
        remaining = len(text) - found.start() - 1
        total = 0
        matched: list[Log] = []
        for i in range(self._current + self._max - 1, self._current - 1, -1):
            log = self._buffer[i % self._max]
            if log is None:
                break
            matched.append(log)
            total += len(self._messages[i % self._max]) + 1
            if total > remaining:
                break
        matched.reverse()
        return matched

    def __str__(self) -> str:
        start = self._current % self._max
        return concat_logs(self._messages[start:] + self._messages[:start])