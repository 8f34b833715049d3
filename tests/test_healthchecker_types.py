import pytest

from nodeproblem.healthchecker_types import (
    LogPatternFlag,
    kube_proxy_health_check_endpoint,
    kubelet_health_check_endpoint,
)


@pytest.mark.parametrize(
    "value, expected_str, expected_map",
    [
        ("10:pattern1", "pattern1:10", {"pattern1": 10}),
        ("10:pattern1,20:pattern2", "pattern1:10 pattern2:20", {"pattern1": 10, "pattern2": 20}),
        (
            "10:pattern1a:pattern1b,20:pattern2",
            "pattern1a:pattern1b:10 pattern2:20",
            {"pattern1a:pattern1b": 10, "pattern2": 20},
        ),
    ],
)
def test_log_pattern_flag_valid(value, expected_str, expected_map):
    flag = LogPatternFlag()
    flag.set(value)
    assert str(flag) == expected_str
    assert flag.log_pattern_count_map() == expected_map


@pytest.mark.parametrize("value", ["10:", "0:pattern1", ":pattern1", ":", "notAnInteger:pattern1", "nocolon"])
def test_log_pattern_flag_invalid(value):
    with pytest.raises(ValueError):
        LogPatternFlag().set(value)


def test_empty_flag_has_empty_map_and_string():
    flag = LogPatternFlag()
    assert flag.log_pattern_count_map() == {}
    assert str(flag) == ""


@pytest.mark.parametrize(
    "env, kubelet, proxy",
    [
        ({}, "http://127.0.0.1:10248/healthz", "http://127.0.0.1:10256/healthz"),
        (
            {"HOST_ADDRESS": "samplehost.testdomain.com"},
            "http://samplehost.testdomain.com:10248/healthz",
            "http://samplehost.testdomain.com:10256/healthz",
        ),
        ({"KUBELET_PORT": "12345"}, "http://127.0.0.1:12345/healthz", "http://127.0.0.1:10256/healthz"),
        ({"KUBEPROXY_PORT": "12345"}, "http://127.0.0.1:10248/healthz", "http://127.0.0.1:12345/healthz"),
        (
            {"HOST_ADDRESS": "samplehost.testdomain.com", "KUBELET_PORT": "12345"},
            "http://samplehost.testdomain.com:12345/healthz",
            "http://samplehost.testdomain.com:10256/healthz",
        ),
        (
            {"HOST_ADDRESS": "samplehost.testdomain.com", "KUBEPROXY_PORT": "12345"},
            "http://samplehost.testdomain.com:10248/healthz",
            "http://samplehost.testdomain.com:12345/healthz",
        ),
        (
            {"HOST_ADDRESS": "10.0.10.1", "KUBELET_PORT": "12345", "KUBEPROXY_PORT": "12346"},
            "http://10.0.10.1:12345/healthz",
            "http://10.0.10.1:12346/healthz",
        ),
    ],
)
def test_kube_endpoint_configuration(env, kubelet, proxy):
    assert kubelet_health_check_endpoint(env) == kubelet
    assert kube_proxy_health_check_endpoint(env) == proxy


def test_endpoint_reads_process_environment(monkeypatch):
    monkeypatch.setenv("HOST_ADDRESS", "10.1.2.3")
    monkeypatch.setenv("KUBELET_PORT", "999")
    assert kubelet_health_check_endpoint() == "http://10.1.2.3:999/healthz"