"""Collects statuses from all problem daemons and hands them to the exporters."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional, Sequence

from nodeproblem.types import Exporter, Monitor, Status

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


class NoProblemDaemonError(RuntimeError):
    """Raised when not a single problem daemon could be started."""


def _forward(source: "queue.Queue[Optional[Status]]", target: "queue.Queue[Status]") -> None:
    while True:
        status = source.get()
        if status is None:
            return
        target.put(status)


class ProblemDetector:
    """Starts the monitors and exports every status they report."""

    def __init__(self, monitors: Sequence[Monitor], exporters: Sequence[Exporter]) -> None:
        self.monitors = list(monitors)
        self.exporters = list(exporters)

    def run(self, stop_event: threading.Event) -> None:
        """Run until ``stop_event`` is set; raise if no monitor could start."""
        sources: list[queue.Queue] = []
        failures = 0
        for monitor in self.monitors:
            try:
                source = monitor.start()
            except Exception as err:
                logger.error("Failed to start problem daemon %r: %s", monitor, err)
                failures += 1
                continue
            if source is not None:
                sources.append(source)

        if failures == len(self.monitors):
            raise NoProblemDaemonError("no problem daemon is successfully setup")

        try:
            statuses: queue.Queue[Status] = queue.Queue()
            for source in sources:
                threading.Thread(target=_forward, args=(source, statuses), daemon=True).start()
            logger.info("Problem detector started")
            while not stop_event.is_set():
                try:
                    status = statuses.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                for exporter in self.exporters:
                    exporter.export_problems(status)
        finally:
            for monitor in self.monitors:
                monitor.stop()