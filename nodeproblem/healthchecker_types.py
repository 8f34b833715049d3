"""Constants, endpoints and the log pattern flag used by the health checker."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from typing import Mapping, Optional

DEFAULT_LOOP_BACK_TIME = timedelta(0)
DEFAULT_CRI_TIMEOUT = timedelta(seconds=2)
DEFAULT_COOL_DOWN_TIME = timedelta(minutes=2)
DEFAULT_HEALTH_CHECK_TIMEOUT = timedelta(seconds=10)
CMD_TIMEOUT = timedelta(seconds=10)
LOG_PARSING_TIME_LAYOUT = "%Y-%m-%d %H:%M:%S"

KUBELET_COMPONENT = "kubelet"
CRI_COMPONENT = "cri"
DOCKER_COMPONENT = "docker"
CONTAINERD_SERVICE = "containerd"
KUBE_PROXY_COMPONENT = "kube-proxy"

DEFAULT_CRICTL = "/usr/bin/crictl"
DEFAULT_CRI_SOCKET_PATH = "unix:///var/run/containerd/containerd.sock"
UPTIME_TIME_LAYOUT = "Mon 2006-01-02 15:04:05 MST"

LOG_PATTERN_FLAG_SEPARATOR = ":"

_HOST_ADDRESS_KEY = "HOST_ADDRESS"
_KUBELET_PORT_KEY = "KUBELET_PORT"
_KUBE_PROXY_PORT_KEY = "KUBEPROXY_PORT"

_DEFAULT_HOST_ADDRESS = "127.0.0.1"
_DEFAULT_KUBELET_PORT = "10248"
_DEFAULT_KUBE_PROXY_PORT = "10256"

_INTEGER = re.compile(r"[+-]?\d+")


def _endpoint(environ: Optional[Mapping[str, str]], port_key: str, default_port: str) -> str:
    env = os.environ if environ is None else environ
    host = env.get(_HOST_ADDRESS_KEY) or _DEFAULT_HOST_ADDRESS
    port = env.get(port_key) or default_port
    return f"http://{host}:{port}/healthz"


def kubelet_health_check_endpoint(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the kubelet health endpoint, honouring HOST_ADDRESS and KUBELET_PORT."""
    return _endpoint(environ, _KUBELET_PORT_KEY, _DEFAULT_KUBELET_PORT)


def kube_proxy_health_check_endpoint(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the kube-proxy health endpoint, honouring HOST_ADDRESS and KUBEPROXY_PORT."""
    return _endpoint(environ, _KUBE_PROXY_PORT_KEY, _DEFAULT_KUBE_PROXY_PORT)


class LogPatternFlag:
    """Maps log patterns to the number of occurrences that marks a failure.

    Values are given as ``<count>:<pattern>`` items separated by commas.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def set(self, value: str) -> None:
        """Add the patterns in ``value``; raise ValueError on a malformed item."""
        for item in value.split(","):
            parts = item.split(LOG_PATTERN_FLAG_SEPARATOR, 1)
            if len(parts) != 2:
                raise ValueError(f"invalid format of the flag value: {parts}")
            count_text, pattern = parts
            if not _INTEGER.fullmatch(count_text) or int(count_text) == 0:
                raise ValueError(f"invalid format for the flag value: {parts}")
            if pattern == "":
                raise ValueError(f"invalid format for the flag value: {parts}")
            self._counts[pattern] = int(count_text)

    def __str__(self) -> str:
        return " ".join(f"{k}:{self._counts[k]}" for k in sorted(self._counts))

    def log_pattern_count_map(self) -> dict[str, int]:
        """Return the stored pattern to threshold mapping."""
        return dict(self._counts)