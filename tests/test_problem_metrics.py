import pytest

from nodeproblem.problem_metrics import (
    Aggregation,
    InMemoryInt64Metric,
    Int64MetricRepresentation,
    ProblemMetricsManager,
    get_global_manager,
    new_problem_metrics_manager,
    new_problem_metrics_manager_stub,
    set_global_manager,
)


def _sorted(metrics):
    return sorted(metrics, key=lambda m: (m.name, sorted(m.labels.items()), m.value))


def _counter(reason, value):
    return Int64MetricRepresentation("problem_counter", {"reason": reason}, value)


def _gauge(problem_type, reason, value):
    return Int64MetricRepresentation(
        "problem_gauge", {"type": problem_type, "reason": reason}, value
    )


@pytest.mark.parametrize(
    "reasons, counts, expected",
    [
        ([], [], []),
        (["foo"], [1], [_counter("foo", 1)]),
        (["foo", "foo"], [1, 1], [_counter("foo", 2)]),
        (["foo", "bar", "foo"], [1, 1, 1], [_counter("foo", 2), _counter("bar", 1)]),
        (["foo", "bar"], [0, 0], [_counter("foo", 0), _counter("bar", 0)]),
        (
            ["foo", "bar", "foo", "bar", "foo"],
            [0, 0, 1, 1, 1],
            [_counter("foo", 2), _counter("bar", 1)],
        ),
    ],
)
def test_increment_problem_counter(reasons, counts, expected):
    pmm, counter, gauge = new_problem_metrics_manager_stub()
    for reason, count in zip(reasons, counts):
        pmm.increment_problem_counter(reason, count)
    got = counter.list_metrics() + gauge.list_metrics()
    assert _sorted(got) == _sorted(expected)


@pytest.mark.parametrize(
    "arguments, expected",
    [
        ([], []),
        ([("ProblemTypeA", "ReasonFoo", True)], [_gauge("ProblemTypeA", "ReasonFoo", 1)]),
        (
            [("ProblemTypeA", "ReasonFoo", True), ("ProblemTypeA", "ReasonFoo", True)],
            [_gauge("ProblemTypeA", "ReasonFoo", 1)],
        ),
        (
            [("ProblemTypeA", "ReasonFoo", True), ("ProblemTypeA", "ReasonBar", True)],
            [_gauge("ProblemTypeA", "ReasonFoo", 0), _gauge("ProblemTypeA", "ReasonBar", 1)],
        ),
        (
            [("ProblemTypeA", "ReasonFoo", True), ("ProblemTypeA", "", False)],
            [_gauge("ProblemTypeA", "", 0), _gauge("ProblemTypeA", "ReasonFoo", 0)],
        ),
        (
            [
                ("ProblemTypeA", "ReasonFoo", True),
                ("ProblemTypeA", "", False),
                ("ProblemTypeA", "ReasonBar", True),
            ],
            [
                _gauge("ProblemTypeA", "", 0),
                _gauge("ProblemTypeA", "ReasonFoo", 0),
                _gauge("ProblemTypeA", "ReasonBar", 1),
            ],
        ),
        (
            [
                ("ProblemTypeA", "ReasonFoo", True),
                ("ProblemTypeB", "ReasonBar", True),
                ("ProblemTypeA", "", False),
            ],
            [
                _gauge("ProblemTypeA", "", 0),
                _gauge("ProblemTypeA", "ReasonFoo", 0),
                _gauge("ProblemTypeB", "ReasonBar", 1),
            ],
        ),
    ],
)
def test_set_problem_gauge(arguments, expected):
    pmm, counter, gauge = new_problem_metrics_manager_stub()
    for problem_type, reason, value in arguments:
        pmm.set_problem_gauge(problem_type, reason, value)
    got = counter.list_metrics() + gauge.list_metrics()
    assert _sorted(got) == _sorted(expected)


def test_uninitialized_counter_raises():
    pmm = ProblemMetricsManager(None, None)
    with pytest.raises(RuntimeError):
        pmm.increment_problem_counter("foo", 1)


def test_uninitialized_gauge_raises():
    pmm = ProblemMetricsManager(None, None)
    with pytest.raises(RuntimeError):
        pmm.set_problem_gauge("A", "foo", True)


def test_metric_rejects_wrong_labels():
    metric = InMemoryInt64Metric("problem_counter", Aggregation.SUM, ["reason"])
    with pytest.raises(ValueError):
        metric.record({"type": "x"}, 1)


def test_last_value_metric_keeps_latest():
    metric = InMemoryInt64Metric("problem_gauge", Aggregation.LAST_VALUE, ["type", "reason"])
    metric.record({"type": "A", "reason": "r"}, 1)
    metric.record({"type": "A", "reason": "r"}, 0)
    assert metric.list_metrics() == [_gauge("A", "r", 0)]


def test_global_manager_can_be_replaced_and_restored():
    replacement = new_problem_metrics_manager()
    previous = set_global_manager(replacement)
    try:
        assert get_global_manager() is replacement
    finally:
        set_global_manager(previous)
    if previous is not None:
        assert get_global_manager() is previous


def test_global_manager_is_created_lazily():
    previous = set_global_manager(None)
    try:
        first = get_global_manager()
        assert get_global_manager() is first
    finally:
        set_global_manager(previous)