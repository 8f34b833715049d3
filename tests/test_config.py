import json

import pytest

from nodeproblem.config import MonitorConfig, parse_monitor_config
from nodeproblem.types import Condition, ProblemType, Rule, WatcherConfig


def test_apply_defaults_fills_unset_values():
    config = MonitorConfig()
    config.apply_default_configuration()
    assert config.buffer_size == 10
    assert config.enable_metrics_reporting is True
    assert config.watcher_config.lookback == "0"


def test_apply_defaults_keeps_given_values():
    config = MonitorConfig(
        watcher_config=WatcherConfig(lookback="5m"),
        buffer_size=3,
        enable_metrics_reporting=False,
    )
    config.apply_default_configuration()
    assert config.buffer_size == 3
    assert config.enable_metrics_reporting is False
    assert config.watcher_config.lookback == "5m"


def test_validate_rules_accepts_valid_patterns():
    config = MonitorConfig(rules=[Rule(type=ProblemType.TEMPORARY, pattern=r"foo\d+")])
    config.validate_rules()
    assert config.rules[0].pattern == r"foo\d+"


def test_validate_rules_rejects_invalid_pattern():
    config = MonitorConfig(rules=[Rule(type=ProblemType.TEMPORARY, pattern="(")])
    with pytest.raises(ValueError):
        config.validate_rules()


def test_parse_monitor_config_reads_all_fields():
    document = {
        "plugin": "filelog",
        "pluginConfig": {"timestamp": "^.{15}"},
        "logPath": "/var/log/kern.log",
        "lookback": "5m",
        "bufferSize": 5,
        "source": "kernel-monitor",
        "metricsReporting": False,
        "conditions": [{"type": "KernelDeadlock", "reason": "KernelHasNoDeadlock", "message": "ok"}],
        "rules": [
            {"type": "temporary", "reason": "OOMKilling", "pattern": "Killed process"},
            {"type": "permanent", "condition": "KernelDeadlock", "reason": "DockerHung", "pattern": "task hung"},
        ],
    }
    config = parse_monitor_config(json.dumps(document))
    assert config.watcher_config == WatcherConfig(
        plugin="filelog",
        plugin_config={"timestamp": "^.{15}"},
        log_path="/var/log/kern.log",
        lookback="5m",
    )
    assert config.buffer_size == 5
    assert config.source == "kernel-monitor"
    assert config.enable_metrics_reporting is False
    assert config.default_conditions == [
        Condition(type="KernelDeadlock", reason="KernelHasNoDeadlock", message="ok")
    ]
    assert config.rules == [
        Rule(type=ProblemType.TEMPORARY, reason="OOMKilling", pattern="Killed process"),
        Rule(type=ProblemType.PERMANENT, condition="KernelDeadlock", reason="DockerHung", pattern="task hung"),
    ]


def test_parse_monitor_config_leaves_defaults_unset():
    config = parse_monitor_config({"source": "x"})
    assert config.buffer_size == 0
    assert config.enable_metrics_reporting is None
    assert config.rules == []


def test_parse_monitor_config_rejects_bad_json():
    with pytest.raises(ValueError):
        parse_monitor_config("{not json")


def test_parse_monitor_config_rejects_non_object():
    with pytest.raises(ValueError):
        parse_monitor_config("[1, 2]")