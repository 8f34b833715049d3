"""Core data types shared by log watchers, monitors and exporters."""

from __future__ import annotations

import abc
import enum
import queue
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional


class ConditionStatus(str, enum.Enum):
    """Status of a node condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Severity(str, enum.Enum):
    """Severity of a node event."""

    INFO = "info"
    WARN = "warn"


class ProblemType(str, enum.Enum):
    """Kind of problem a rule detects."""

    TEMPORARY = "temporary"
    PERMANENT = "permanent"


@dataclass
class Condition:
    """A node condition; mutable because monitors update it in place."""

    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    transition: Optional[datetime] = None
    reason: str = ""
    message: str = ""


@dataclass
class Event:
    """A node event reported by a problem daemon."""

    severity: Severity
    timestamp: Optional[datetime]
    reason: str
    message: str


@dataclass
class Status:
    """What a problem daemon reports: its events and current conditions."""

    source: str
    events: list[Event] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)


@dataclass(frozen=True)
class Log:
    """A single translated log line."""

    timestamp: Optional[datetime] = None
    message: str = ""


@dataclass
class Rule:
    """Describes how a log monitor recognises a problem in the log."""

    type: ProblemType
    condition: str = ""
    reason: str = ""
    pattern: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rule":
        """Build a rule from its JSON form; raises ValueError on a bad type."""
        if "type" not in data:
            raise ValueError("rule is missing its type")
        try:
            kind = ProblemType(data["type"])
        except ValueError:
            raise ValueError(f"unknown problem type {data['type']!r}") from None
        return cls(
            type=kind,
            condition=str(data.get("condition", "")),
            reason=str(data.get("reason", "")),
            pattern=str(data.get("pattern", "")),
        )


@dataclass
class WatcherConfig:
    """Configuration of a log watcher."""

    plugin: str = ""
    plugin_config: dict[str, str] = field(default_factory=dict)
    log_path: str = ""
    lookback: str = ""
    delay: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WatcherConfig":
        """Build a watcher configuration from its JSON form."""
        plugin_config = data.get("pluginConfig") or {}
        if not isinstance(plugin_config, Mapping):
            raise ValueError("pluginConfig must be an object")
        return cls(
            plugin=str(data.get("plugin", "")),
            plugin_config={str(k): str(v) for k, v in plugin_config.items()},
            log_path=str(data.get("logPath", "")),
            lookback=str(data.get("lookback", "")),
            delay=str(data.get("delay", "")),
        )


class LogWatcher(abc.ABC):
    """Watches a log source and delivers translated logs through a queue.

    A ``None`` item on the queue means the watcher has closed it.
    """

    @abc.abstractmethod
    def watch(self) -> "queue.Queue[Optional[Log]]":
        """Start watching and return the queue logs arrive on."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop watching and release any resources held."""


class Monitor(abc.ABC):
    """A problem daemon that reports statuses through a queue.

    A ``None`` item on the queue means the monitor has closed it.
    """

    @abc.abstractmethod
    def start(self) -> "Optional[queue.Queue[Optional[Status]]]":
        """Start the monitor; return its status queue, or None if it has none."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop the monitor."""


class Exporter(abc.ABC):
    """Exports problem statuses somewhere."""

    @abc.abstractmethod
    def export_problems(self, status: Status) -> None:
        """Export one status."""