import queue
from datetime import datetime, timedelta, timezone

import pytest

from nodeproblem.log_counter import LogChannelClosedError, LogCounter
from nodeproblem.types import Log

START = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
BEFORE = START - timedelta(seconds=1)
AFTER = START + timedelta(seconds=1)


def _counter(pattern, logs):
    log_queue = queue.Queue()
    for log in logs:
        log_queue.put(log)
    return LogCounter(log_queue, pattern, clock=lambda: START, timeout=0.05)


@pytest.mark.parametrize(
    "logs,pattern,expected",
    [
        ([], "", 0),
        ([Log(timestamp=BEFORE, message="0")], "0", 1),
        ([Log(timestamp=BEFORE, message="1")], "0", 0),
        ([Log(timestamp=AFTER, message="0")], "0", 0),
        (
            [
                Log(timestamp=BEFORE, message="0"),
                Log(timestamp=BEFORE, message="0"),
                Log(timestamp=BEFORE, message="1"),
                Log(timestamp=AFTER, message="0"),
            ],
            "0",
            2,
        ),
    ],
    ids=["no logs", "one matching", "one non-matching", "too new", "many logs"],
)
def test_count(logs, pattern, expected):
    assert _counter(pattern, logs).count() == expected


def test_newer_log_stops_counting_before_later_logs():
    counter = _counter("0", [Log(timestamp=AFTER, message="0"), Log(timestamp=BEFORE, message="0")])
    assert counter.count() == 0
    assert counter.log_queue.qsize() == 1


def test_closed_queue_raises():
    counter = _counter("0", [Log(timestamp=BEFORE, message="0"), None])
    with pytest.raises(LogChannelClosedError):
        counter.count()