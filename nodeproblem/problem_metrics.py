"""Metrics derived from problems: a counter per reason and a gauge per condition."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

PROBLEM_COUNTER_NAME = "problem_counter"
PROBLEM_GAUGE_NAME = "problem_gauge"


class Aggregation(enum.Enum):
    """How recorded values are combined."""

    SUM = "sum"
    LAST_VALUE = "last_value"


@dataclass
class Int64MetricRepresentation:
    """A snapshot of one labelled metric value."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: int = 0


class InMemoryInt64Metric:
    """An integer metric kept in memory, one value per label combination."""

    def __init__(self, name: str, aggregation: Aggregation, tag_names: Sequence[str]) -> None:
        self.name = name
        self.aggregation = aggregation
        self.tag_names = tuple(tag_names)
        self._values: dict[tuple[str, ...], int] = {}
        self._lock = threading.Lock()

    def record(self, labels: Mapping[str, str], value: int) -> None:
        """Record ``value`` for the given labels; they must be exactly the tag names."""
        if set(labels) != set(self.tag_names):
            raise ValueError(
                f"metric {self.name!r} expects labels {sorted(self.tag_names)}, "
                f"got {sorted(labels)}"
            )
        key = tuple(labels[name] for name in self.tag_names)
        with self._lock:
            if self.aggregation is Aggregation.SUM:
                self._values[key] = self._values.get(key, 0) + value
            else:
                self._values[key] = value

    def list_metrics(self) -> list[Int64MetricRepresentation]:
        """Return every recorded label combination with its current value."""
        with self._lock:
            return [
                Int64MetricRepresentation(
                    name=self.name,
                    labels=dict(zip(self.tag_names, key)),
                    value=value,
                )
                for key, value in self._values.items()
            ]


class ProblemMetricsManager:
    """Manages problem-converted metrics; safe to use from several threads."""

    def __init__(
        self,
        problem_counter: Optional[InMemoryInt64Metric],
        problem_gauge: Optional[InMemoryInt64Metric],
    ) -> None:
        self._problem_counter = problem_counter
        self._problem_gauge = problem_gauge
        self._type_to_reason: dict[str, str] = {}
        self._lock = threading.Lock()

    def increment_problem_counter(self, reason: str, count: int) -> None:
        """Add ``count`` occurrences of the problem ``reason``."""
        if self._problem_counter is None:
            raise RuntimeError("problem counter is being incremented before initialized")
        self._problem_counter.record({"reason": reason}, count)

    def set_problem_gauge(self, problem_type: str, reason: str, value: bool) -> None:
        """Set the gauge of a problem type, clearing its previous reason."""
        if self._problem_gauge is None:
            raise RuntimeError("problem gauge is being set before initialized")
        with self._lock:
            # At most one reason per type may be set; the old one must be zeroed
            # explicitly since each label combination is a separate series.
            last_reason = self._type_to_reason.get(problem_type)
            if last_reason is not None:
                try:
                    self._problem_gauge.record({"type": problem_type, "reason": last_reason}, 0)
                except Exception as err:
                    raise RuntimeError(
                        f"failed to clear previous reason {last_reason!r} "
                        f"for type {problem_type!r}: {err}"
                    ) from err
            self._type_to_reason[problem_type] = reason
            self._problem_gauge.record(
                {"type": problem_type, "reason": reason}, 1 if value else 0
            )


def _new_metrics() -> tuple[InMemoryInt64Metric, InMemoryInt64Metric]:
    counter = InMemoryInt64Metric(PROBLEM_COUNTER_NAME, Aggregation.SUM, ["reason"])
    gauge = InMemoryInt64Metric(PROBLEM_GAUGE_NAME, Aggregation.LAST_VALUE, ["type", "reason"])
    return counter, gauge


def new_problem_metrics_manager() -> ProblemMetricsManager:
    """Create a manager with fresh problem counter and gauge metrics."""
    counter, gauge = _new_metrics()
    return ProblemMetricsManager(counter, gauge)


def new_problem_metrics_manager_stub() -> tuple[
    ProblemMetricsManager, InMemoryInt64Metric, InMemoryInt64Metric
]:
    """Create a manager and also return its counter and gauge for inspection."""
    counter, gauge = _new_metrics()
    return ProblemMetricsManager(counter, gauge), counter, gauge


_global_manager: Optional[ProblemMetricsManager] = None
_global_lock = threading.Lock()


def get_global_manager() -> ProblemMetricsManager:
    """Return the process-wide manager, creating it on first use."""
    global _global_manager
    with _global_lock:
        if _global_manager is None:
            _global_manager = new_problem_metrics_manager()
        return _global_manager


def set_global_manager(manager: Optional[ProblemMetricsManager]) -> Optional[ProblemMetricsManager]:
    """Replace the process-wide manager and return the previous one."""
    global _global_manager
    with _global_lock:
        previous = _global_manager
        _global_manager = manager
        return previous