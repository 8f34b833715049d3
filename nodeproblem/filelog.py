"""Log watcher that follows a plain text log file."""

from __future__ import annotations

import logging
import os
import queue
import re
import threading
from datetime import datetime, timedelta
from typing import Optional

from nodeproblem.translator import Translator
from nodeproblem.types import Log, LogWatcher, WatcherConfig

logger = logging.getLogger(__name__)

WATCH_POLL_INTERVAL = 0.5
_QUEUE_SIZE = 1000

_DURATION_PART = re.compile("(\\d+(?:\\.\\d*)?|\\.\\d+)(ns|us|\u00b5s|ms|s|m|h)")
_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "\u00b5s": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def _parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``10m`` or ``1h30m``; ``0`` and ``""`` are zero."""
    if text in ("", "0", "+0", "-0"):
        return timedelta(0)
    sign = 1
    body = text
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if not body:
        raise ValueError(f"invalid duration {text!r}")
    pos = 0
    seconds = 0.0
    while pos < len(body):
        part = _DURATION_PART.match(body, pos)
        if part is None:
            raise ValueError(f"invalid duration {text!r}")
        seconds += float(part.group(1)) * _UNITS[part.group(2)]
        pos = part.end()
    return timedelta(seconds=sign * seconds)


def _uptime() -> timedelta:
    with open("/proc/uptime", encoding="ascii") as f:
        return timedelta(seconds=float(f.read().split()[0]))


def _get_start_time(now: datetime, uptime: timedelta, lookback: str, delay: str) -> datetime:
    """Earliest log time to report: ``lookback`` ago, but not before boot plus ``delay``."""
    start = now - _parse_duration(lookback)
    boot = now - uptime + _parse_duration(delay)
    return max(start, boot)


def _open_log(path: str):
    return open(path, encoding="utf-8", errors="replace", newline="")


class FileLogWatcher(LogWatcher):
    """Reads a log file from its start and follows it as it grows or rotates."""

    def __init__(self, config: WatcherConfig, start_time: datetime) -> None:
        self.config = config
        self.start_time = start_time
        self._translator = Translator(config.plugin_config)
        self._logs: "queue.Queue[Optional[Log]]" = queue.Queue(maxsize=_QUEUE_SIZE)
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def watch(self) -> "queue.Queue[Optional[Log]]":
        """Open the log file and start delivering logs."""
        path = self.config.log_path
        if not path:
            raise ValueError("unexpected empty log path")
        try:
            os.stat(path)
        except OSError as err:
            raise OSError(f"failed to stat the file {path!r}: {err}") from err
        handle = _open_log(path)
        logger.info("Start watching filelog")
        self._thread = threading.Thread(target=self._watch_loop, args=(handle,), daemon=True)
        self._thread.start()
        return self._logs

    def stop(self) -> None:
        """Ask the watch loop to finish."""
        self._stopping.set()

    def _rotated(self, handle) -> bool:
        try:
            on_disk = os.stat(self.config.log_path)
        except OSError:
            return False
        current = os.fstat(handle.fileno())
        return on_disk.st_ino != current.st_ino or on_disk.st_size < handle.tell()

    def _watch_loop(self, handle) -> None:
        pending = ""
        try:
            while not self._stopping.is_set():
                try:
                    line = handle.readline()
                except OSError as err:
                    logger.error("Exiting filelog watch with error: %s", err)
                    return
                pending += line
                if not line.endswith("\n"):
                    if self._rotated(handle):
                        handle.close()
                        handle = _open_log(self.config.log_path)
                        pending = ""
                        continue
                    self._stopping.wait(WATCH_POLL_INTERVAL)
                    continue
                text, pending = pending[:-1], ""
                try:
                    log = self._translator.translate(text)
                except ValueError as err:
                    logger.warning("Unable to parse line: %r, %s", text, err)
                    continue
                if log.timestamp is not None and log.timestamp < self.start_time:
                    logger.debug("Throwing away msg %r before start time", log.message)
                    continue
                self._logs.put(log)
        finally:
            handle.close()
            logger.info("Stop watching filelog")
            self._logs.put(None)


def new_filelog_watcher(config: WatcherConfig) -> FileLogWatcher:
    """Create a file log watcher whose start time comes from uptime and lookback."""
    now = datetime.now().astimezone()
    start = _get_start_time(now, _uptime(), config.lookback, config.delay)
    return FileLogWatcher(config, start)