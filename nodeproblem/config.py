"""Configuration of a system log monitor."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from nodeproblem.types import Condition, ConditionStatus, Rule, WatcherConfig

DEFAULT_BUFFER_SIZE = 10
DEFAULT_LOOKBACK = "0"
DEFAULT_ENABLE_METRICS_REPORTING = True


@dataclass
class MonitorConfig:
    """Settings of one log monitor: its watcher, buffer, conditions and rules."""

    watcher_config: WatcherConfig = field(default_factory=WatcherConfig)
    buffer_size: int = 0
    source: str = ""
    default_conditions: list[Condition] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)
    enable_metrics_reporting: Optional[bool] = None

    def apply_default_configuration(self) -> None:
        """Fill in defaults for every setting that was left unset."""
        if self.buffer_size == 0:
            self.buffer_size = DEFAULT_BUFFER_SIZE
        if self.enable_metrics_reporting is None:
            self.enable_metrics_reporting = DEFAULT_ENABLE_METRICS_REPORTING
        if self.watcher_config.lookback == "":
            self.watcher_config.lookback = DEFAULT_LOOKBACK

    def validate_rules(self) -> None:
        """Raise ValueError if any rule pattern is not a valid regular expression."""
        for rule in self.rules:
            try:
                re.compile(rule.pattern)
            except re.error as err:
                raise ValueError(f"invalid pattern {rule.pattern!r}: {err}") from err


def _parse_condition(data: Mapping[str, Any]) -> Condition:
    if "type" not in data:
        raise ValueError("condition is missing its type")
    status = data.get("status")
    return Condition(
        type=str(data["type"]),
        status=ConditionStatus(status) if status else ConditionStatus.UNKNOWN,
        reason=str(data.get("reason", "")),
        message=str(data.get("message", "")),
    )


def parse_monitor_config(data: Union[str, bytes, Mapping[str, Any]]) -> MonitorConfig:
    """Build a monitor configuration from its JSON text or decoded JSON object."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as err:
            raise ValueError(f"invalid monitor configuration: {err}") from err
    if not isinstance(data, Mapping):
        raise ValueError("monitor configuration must be a JSON object")
    metrics = data.get("metricsReporting")
    if metrics is not None and not isinstance(metrics, bool):
        raise ValueError("metricsReporting must be a boolean")
    buffer_size = data.get("bufferSize", 0)
    if not isinstance(buffer_size, int) or isinstance(buffer_size, bool):
        raise ValueError("bufferSize must be an integer")
    return MonitorConfig(
        watcher_config=WatcherConfig.from_dict(data),
        buffer_size=buffer_size,
        source=str(data.get("source", "")),
        default_conditions=[_parse_condition(c) for c in data.get("conditions") or []],
        rules=[Rule.from_dict(r) for r in data.get("rules") or []],
        enable_metrics_reporting=metrics,
    )