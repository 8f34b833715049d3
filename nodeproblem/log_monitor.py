"""Problem daemon that matches rules against a watched system log."""

from __future__ import annotations

import dataclasses
import json
import logging
import queue
import threading
from datetime import datetime
from typing import Iterable, Optional, Sequence

from nodeproblem.config import MonitorConfig, parse_monitor_config
from nodeproblem.log_buffer import LogBuffer, concat_logs
from nodeproblem.log_watchers import get_log_watcher
from nodeproblem.problem_daemon import ProblemDaemonHandler, register
from nodeproblem.problem_metrics import ProblemMetricsManager, get_global_manager
from nodeproblem.types import (
    Condition,
    ConditionStatus,
    Event,
    Log,
    LogWatcher,
    Monitor,
    ProblemType,
    Rule,
    Severity,
    Status,
)

logger = logging.getLogger(__name__)

SYSTEM_LOG_MONITOR_NAME = "system-log-monitor"

_OUTPUT_SIZE = 1000
_POLL_INTERVAL = 0.1


def generate_condition_change_event(
    condition_type: str,
    status: ConditionStatus,
    reason: str,
    message: str,
    timestamp: Optional[datetime],
) -> Event:
    """Build the informational event reported when a condition changes."""
    return Event(
        severity=Severity.INFO,
        timestamp=timestamp,
        reason=reason,
        message=(
            f"Node condition {condition_type} is now: {status.value}, "
            f"reason: {reason}, message: {json.dumps(message)}"
        ),
    )


def initial_conditions(defaults: Iterable[Condition]) -> list[Condition]:
    """Copy the default conditions, all set to False as of now."""
    now = datetime.now().astimezone()
    return [
        dataclasses.replace(c, status=ConditionStatus.FALSE, transition=now) for c in defaults
    ]


def generate_message(logs: Iterable[Log]) -> str:
    """Join the messages of the logs into one message."""
    return concat_logs(log.message for log in logs)


def initialize_problem_metrics(
    rules: Sequence[Rule], metrics_manager: Optional[ProblemMetricsManager] = None
) -> None:
    """Create the problem metrics of every rule with a value of zero."""
    manager = metrics_manager or get_global_manager()
    for rule in rules:
        if rule.type is ProblemType.PERMANENT:
            manager.set_problem_gauge(rule.condition, rule.reason, False)
        manager.increment_problem_counter(rule.reason, 0)


class LogMonitor(Monitor):
    """Pushes each new log into a buffer and reports a status for every matching rule."""

    def __init__(
        self,
        config: MonitorConfig,
        watcher: LogWatcher,
        config_path: str = "",
        metrics_manager: Optional[ProblemMetricsManager] = None,
    ) -> None:
        self.config = config
        self.config.apply_default_configuration()
        self.config.validate_rules()
        self.config_path = config_path
        self.watcher = watcher
        self._metrics_manager = metrics_manager
        self._buffer = LogBuffer(self.config.buffer_size)
        self.conditions: list[Condition] = initial_conditions(self.config.default_conditions)
        self._output: queue.Queue[Optional[Status]] = queue.Queue(maxsize=_OUTPUT_SIZE)
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if self.config.enable_metrics_reporting:
            initialize_problem_metrics(self.config.rules, self._metrics)

    @property
    def _metrics(self) -> ProblemMetricsManager:
        return self._metrics_manager or get_global_manager()

    def start(self) -> "queue.Queue[Optional[Status]]":
        """Start watching the log and return the status queue."""
        logger.info("Start log monitor %s", self.config_path)
        logs = self.watcher.watch()
        self._thread = threading.Thread(target=self._monitor_loop, args=(logs,), daemon=True)
        self._thread.start()
        return self._output

    def stop(self) -> None:
        """Ask the monitor loop to finish."""
        logger.info("Stop log monitor %s", self.config_path)
        self._stopping.set()

    def _monitor_loop(self, logs: "queue.Queue[Optional[Log]]") -> None:
        try:
            self._initialize_status()
            while True:
                if self._stopping.is_set():
                    self.watcher.stop()
                    logger.info("Log monitor stopped: %s", self.config_path)
                    return
                try:
                    log = logs.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                if log is None:
                    logger.error("Log channel closed: %s", self.config_path)
                    return
                self._parse_log(log)
        finally:
            self._output.put(None)

    def _parse_log(self, log: Log) -> None:
        self._buffer.push(log)
        for rule in self.config.rules:
            matched = self._buffer.match(rule.pattern)
            if not matched:
                continue
            status = self.generate_status(matched, rule)
            logger.info("New status generated: %r", status)
            self._output.put(status)

    def _snapshot(self) -> list[Condition]:
        return [dataclasses.replace(c) for c in self.conditions]

    def _initialize_status(self) -> None:
        self.conditions = initial_conditions(self.config.default_conditions)
        logger.info("Initialize condition generated: %r", self.conditions)
        self._output.put(Status(source=self.config.source, conditions=self._snapshot()))

    def generate_status(self, logs: Sequence[Log], rule: Rule) -> Status:
        """Apply a matched rule to the conditions and build the status to report."""
        timestamp = logs[0].timestamp
        message = generate_message(logs)
        events: list[Event] = []
        changed: list[Condition] = []
        if rule.type is ProblemType.TEMPORARY:
            events.append(
                Event(severity=Severity.WARN, timestamp=timestamp, reason=rule.reason, message=message)
            )
        else:
            for condition in self.conditions:
                if condition.type != rule.condition:
                    continue
                # A condition changes only when its status or reason does.
                if condition.status is ConditionStatus.FALSE or condition.reason != rule.reason:
                    condition.transition = timestamp
                    condition.message = message
                    events.append(
                        generate_condition_change_event(
                            condition.type, ConditionStatus.TRUE, rule.reason, message, timestamp
                        )
                    )
                condition.status = ConditionStatus.TRUE
                condition.reason = rule.reason
                changed.append(condition)
                break

        if self.config.enable_metrics_reporting:
            manager = self._metrics
            for event in events:
                try:
                    manager.increment_problem_counter(event.reason, 1)
                except Exception as err:
                    logger.error("Failed to update problem counter metrics for %r: %s", event.reason, err)
            for condition in changed:
                try:
                    manager.set_problem_gauge(
                        condition.type, condition.reason, condition.status is ConditionStatus.TRUE
                    )
                except Exception as err:
                    logger.error(
                        "Failed to update problem gauge metrics for problem %r, reason %r: %s",
                        condition.type, condition.reason, err,
                    )

        return Status(source=self.config.source, events=events, conditions=self._snapshot())


def new_log_monitor(config_path: str) -> LogMonitor:
    """Create a log monitor from a JSON configuration file."""
    with open(config_path, encoding="utf-8") as f:
        config = parse_monitor_config(f.read())
    config.apply_default_configuration()
    config.validate_rules()
    logger.info("Finish parsing log monitor config file %s: %r", config_path, config)
    watcher = get_log_watcher(config.watcher_config)
    return LogMonitor(config, watcher, config_path)


register(
    SYSTEM_LOG_MONITOR_NAME,
    ProblemDaemonHandler(
        create_problem_daemon=new_log_monitor,
        cmd_option_description="Set to config file paths.",
    ),
)