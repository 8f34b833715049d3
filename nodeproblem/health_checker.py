"""Checks the health of a node component and restarts it when it stays unhealthy."""

from __future__ import annotations

import logging
import re
import subprocess
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Mapping, Optional, Union

from nodeproblem.healthchecker_types import (
    CMD_TIMEOUT,
    CRI_COMPONENT,
    DEFAULT_COOL_DOWN_TIME,
    DEFAULT_CRI_SOCKET_PATH,
    DEFAULT_CRI_TIMEOUT,
    DEFAULT_CRICTL,
    DEFAULT_HEALTH_CHECK_TIMEOUT,
    DEFAULT_LOOP_BACK_TIME,
    DOCKER_COMPONENT,
    KUBE_PROXY_COMPONENT,
    KUBELET_COMPONENT,
    LOG_PARSING_TIME_LAYOUT,
    UPTIME_TIME_LAYOUT,
    LogPatternFlag,
    kube_proxy_health_check_endpoint,
    kubelet_health_check_endpoint,
)
from nodeproblem.translator import parse_go_time

logger = logging.getLogger(__name__)

Duration = Union[timedelta, float, int]

_INTEGER = re.compile(r"[+-]?\d+")


@dataclass
class HealthCheckerOptions:
    """Settings of a health checker for one component."""

    component: str
    service: str = ""
    enable_repair: bool = False
    cri_ctl_path: str = DEFAULT_CRICTL
    cri_socket_path: str = DEFAULT_CRI_SOCKET_PATH
    cri_timeout: timedelta = DEFAULT_CRI_TIMEOUT
    health_check_timeout: timedelta = DEFAULT_HEALTH_CHECK_TIMEOUT
    cool_down_time: timedelta = DEFAULT_COOL_DOWN_TIME
    loop_back_time: timedelta = DEFAULT_LOOP_BACK_TIME
    log_patterns: LogPatternFlag = field(default_factory=LogPatternFlag)


def _seconds(value: Duration) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


def _trim_decimal(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_duration(duration: timedelta) -> str:
    """Format a duration the way command-line tools expect, e.g. ``2s`` or ``1m30s``."""
    micro = duration // timedelta(microseconds=1)
    if micro == 0:
        return "0s"
    sign = "-" if micro < 0 else ""
    micro = abs(micro)
    if micro < 1000:
        return f"{sign}{micro}µs"
    if micro < 1_000_000:
        return f"{sign}{_trim_decimal(Decimal(micro) / 1000)}ms"
    hours, rest = divmod(micro, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    text = ""
    if hours:
        text += f"{hours}h"
    if hours or minutes:
        text += f"{minutes}m"
    return f"{sign}{text}{_trim_decimal(Decimal(rest) / 1_000_000)}s"


def exec_command(timeout: Duration, command: str, *args: str) -> str:
    """Run a command and return its combined output without the final newline.

    Raises CalledProcessError on a non-zero exit and TimeoutExpired on timeout.
    """
    argv = [command, *args]
    try:
        result = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=_seconds(timeout),
        )
    except (OSError, subprocess.SubprocessError) as err:
        logger.info("command %s failed: %s", argv, err)
        raise
    if result.returncode != 0:
        logger.info("command %s failed: exit status %d, %r", argv, result.returncode, result.stdout)
        raise subprocess.CalledProcessError(result.returncode, argv, output=result.stdout)
    out = result.stdout or ""
    return out[:-1] if out.endswith("\n") else out


def _succeeds(timeout: Duration, command: str, *args: str) -> bool:
    try:
        exec_command(timeout, command, *args)
    except (OSError, subprocess.SubprocessError):
        return False
    return True


def _endpoint_ok_func(endpoint: str, timeout: Duration) -> Callable[[], bool]:
    def check() -> bool:
        try:
            with urllib.request.urlopen(endpoint, timeout=_seconds(timeout)) as response:
                return response.status == 200
        except (OSError, ValueError):
            return False

    return check


def get_health_check_func(options: HealthCheckerOptions) -> Optional[Callable[[], bool]]:
    """Return the health check for the component, or None if it is unsupported."""
    component = options.component
    if component == KUBELET_COMPONENT:
        return _endpoint_ok_func(kubelet_health_check_endpoint(), options.health_check_timeout)
    if component == KUBE_PROXY_COMPONENT:
        return _endpoint_ok_func(kube_proxy_health_check_endpoint(), options.health_check_timeout)
    if component == DOCKER_COMPONENT:
        return lambda: _succeeds(options.health_check_timeout, "docker", "ps")
    if component == CRI_COMPONENT:
        return lambda: _succeeds(
            options.health_check_timeout,
            options.cri_ctl_path,
            "--timeout=" + _format_duration(options.cri_timeout),
            "--runtime-endpoint=" + options.cri_socket_path,
            "pods",
            "--latest",
        )
    logger.warning("Unsupported component: %s", component)
    return None


def _ignore_failure(command: str, *args: str) -> None:
    try:
        exec_command(CMD_TIMEOUT, command, *args)
    except (OSError, subprocess.SubprocessError):
        pass


def get_repair_func(options: HealthCheckerOptions) -> Callable[[], None]:
    """Return the best-effort repair action for the component; failures are ignored."""
    if options.component == DOCKER_COMPONENT:
        def repair_docker() -> None:
            _ignore_failure("pkill", "-SIGUSR1", "dockerd")
            _ignore_failure("systemctl", "kill", "--kill-who=main", options.service)

        return repair_docker

    def repair() -> None:
        _ignore_failure("systemctl", "kill", "--kill-who=main", options.service)

    return repair


def get_uptime_func(service: str) -> Callable[[], timedelta]:
    """Return a function giving how long systemd has been running ``service``."""

    def uptime() -> timedelta:
        # InactiveExitTimestamp marks when systemd began starting the service,
        # which also covers services stuck in the activating state.
        out = exec_command(CMD_TIMEOUT, "systemctl", "show", service, "--property=InactiveExitTimestamp")
        parts = out.split("=")
        if len(parts) < 2:
            raise ValueError("could not parse the service uptime time correctly")
        started = parse_go_time(UPTIME_TIME_LAYOUT, parts[1])
        return datetime.now(timezone.utc) - started

    return uptime


def check_for_pattern(service: str, log_start_time: str, log_pattern: str, log_count_threshold: int) -> bool:
    """Return False if ``log_pattern`` occurred at least the threshold number of times."""
    out = exec_command(
        CMD_TIMEOUT,
        "/bin/sh",
        "-c",
        f'journalctl --unit "{service}" --since "{log_start_time}"'
        f' | grep -i "{log_pattern}" | wc -l',
    )
    if not _INTEGER.fullmatch(out):
        raise ValueError(f"unexpected occurrence count {out!r}")
    occurrences = int(out)
    if occurrences >= log_count_threshold:
        logger.info("%s failed log pattern check, %s occurrences: %d", service, log_pattern, occurrences)
        return False
    return True


def log_pattern_health_check(service: str, loop_back_time: timedelta, log_patterns: Mapping[str, int]) -> bool:
    """Return True unless a pattern reached its threshold since the service started."""
    if not log_patterns:
        return True
    logger.info("Getting uptime for service: %s", service)
    try:
        uptime = get_uptime_func(service)()
    except Exception as err:
        logger.warning("Failed to get the uptime: %s", err)
        raise
    now = datetime.now()
    start = now - uptime
    if loop_back_time > timedelta(0) and uptime > loop_back_time:
        start = now - loop_back_time
    log_start_time = start.strftime(LOG_PARSING_TIME_LAYOUT)
    for pattern, count in log_patterns.items():
        if not check_for_pattern(service, log_start_time, pattern, count):
            return False
    return True


class HealthChecker:
    """Checks a component and repairs it once it has been up past its cool-down."""

    def __init__(
        self,
        options: HealthCheckerOptions,
        health_check_func: Optional[Callable[[], bool]] = None,
        repair_func: Optional[Callable[[], None]] = None,
        uptime_func: Optional[Callable[[], timedelta]] = None,
    ) -> None:
        self.component = options.component
        self.service = options.service
        self.enable_repair = options.enable_repair
        self.cool_down_time = options.cool_down_time
        self.loop_back_time = options.loop_back_time
        self.log_patterns = options.log_patterns.log_pattern_count_map()
        check = health_check_func or get_health_check_func(options)
        if check is None:
            raise ValueError(f"unsupported component: {options.component}")
        self.health_check_func = check
        self.repair_func = repair_func or get_repair_func(options)
        self.uptime_func = uptime_func or get_uptime_func(options.service)

    def check_health(self) -> bool:
        """Return True if healthy; otherwise repair when enabled and return False."""
        healthy = self.health_check_func()
        log_pattern_healthy = log_pattern_health_check(self.service, self.loop_back_time, self.log_patterns)
        if healthy and log_pattern_healthy:
            return True
        if self.enable_repair:
            try:
                uptime = self.uptime_func()
            except Exception as err:
                logger.info("error in getting uptime for %s: %s", self.component, err)
                return False
            logger.info("%s is unhealthy, component uptime: %s", self.component, uptime)
            if uptime > self.cool_down_time:
                logger.info("%s cooldown period of %s exceeded, repairing", self.component, self.cool_down_time)
                self.repair_func()
        return False