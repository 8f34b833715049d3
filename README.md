# nodeproblem

`nodeproblem` is a library that watches a machine's system logs and the
health of its node components. It turns what it finds into problem
conditions, events and metrics, and hands them to exporters that you supply.

## What it provides

- **Core types** (`nodeproblem.types`). This module defines `Log`, `Rule`,
  `Condition`, `Event`, `Status` and `WatcherConfig`, and the enums
  `ConditionStatus`, `Severity` and `ProblemType`. It also defines the
  abstract interfaces `LogWatcher`, `Monitor` and `Exporter`. Watchers and
  monitors deliver items through a `queue.Queue`. A `None` item means the
  queue has been closed.
- **Log matching** (`nodeproblem.log_buffer`). `LogBuffer` keeps the most
  recent log lines in a ring buffer. Its `match` method takes a regular
  expression that must match up to the end of the newest line. It returns
  the lines that took part in the match, so multi-line patterns work.
- **Log translation** (`nodeproblem.translator`). `Translator` turns a raw
  line into a `Log` using three plugin settings:
  - `timestamp`: a regular expression that finds the timestamp;
  - `message`: a regular expression that finds the message;
  - `timestampFormat`: the layout of the timestamp.

  When a regular expression has groups, the last group is used.
  `parse_go_time` parses timestamps written against the reference time
  layout, such as `Jan _2 15:04:05` or `2006-01-02T15:04:05.999999999-07:00`.
  A layout without a year gives a time in the current year. A value without
  a zone is taken as local time.
- **File log watching** (`nodeproblem.filelog`). `FileLogWatcher` reads a
  log file from its start and follows it as it grows or is rotated. It puts
  translated `Log` records that are not older than its start time onto a
  queue.

  `new_filelog_watcher` works out that start time. It takes the current
  time minus the `lookback` duration, but never earlier than boot time plus
  `delay`. Boot time comes from `/proc/uptime`.
- **Watcher registry** (`nodeproblem.log_watchers`). Watchers are looked up
  by plugin name through `get_log_watcher`. The `filelog` plugin is
  registered. You can add others with `register_log_watcher`. An unknown
  plugin raises `UnknownLogWatcherError`.
- **Monitor configuration** (`nodeproblem.config`). `parse_monitor_config`
  builds a `MonitorConfig` from JSON text or from an already decoded object.
  It reads these keys:
  - `plugin`, `pluginConfig`, `logPath`, `lookback` and `delay`;
  - `bufferSize` and `source`;
  - `conditions` and `rules`;
  - `metricsReporting`.

  `apply_default_configuration` fills in the defaults: a buffer of 10 lines,
  a lookback of `"0"`, and metrics reporting switched on.
  `validate_rules` rejects patterns that are not valid regular expressions.
- **Log monitors** (`nodeproblem.log_monitor`). `LogMonitor` pushes each new
  log into its buffer and tries every rule against it.
  - A matching `temporary` rule produces a warning event.
  - A matching `permanent` rule sets its condition to `True` and adds an
    informational event when the condition's status or reason changes.

  `new_log_monitor(path)` builds a monitor from a JSON configuration file.
  Importing the module registers it as the `system-log-monitor` problem
  daemon.
- **Problem metrics** (`nodeproblem.problem_metrics`).
  `ProblemMetricsManager` keeps two in-memory metrics, each an
  `InMemoryInt64Metric`:
  - a `problem_counter` per reason;
  - a `problem_gauge` per type and reason.

  For each problem type, at most one reason holds the value 1.
  `get_global_manager` and `set_global_manager` give access to a
  process-wide manager.
- **Problem daemons and the detector**. Daemon factories are registered by
  type in `nodeproblem.problem_daemon` with `register`. `new_problem_daemons`
  creates one daemon per distinct configuration path.

  `ProblemDetector` (`nodeproblem.problem_detector`) starts every monitor and
  passes their statuses to the exporters until a `threading.Event` is set.
  It raises `NoProblemDaemonError` if no monitor could be started.
- **Log counting** (`nodeproblem.log_counter`). `LogCounter.count` reads logs
  from a queue and counts those after which the pattern matches. It stops at
  the first log newer than the moment counting began, or when no log arrives
  within the timeout.
- **Component health checks**. These live in `nodeproblem.health_checker`
  and `nodeproblem.healthchecker_types`. `HealthChecker` checks one
  component, described by `HealthCheckerOptions`:
  - the kubelet or kube-proxy, through their HTTP `/healthz` endpoints;
  - `docker`, by running `docker ps`;
  - a CRI runtime, by running `crictl pods --latest`.

  It can also count failure patterns in the service's journal. When it finds
  the component unhealthy and repair is enabled, it repairs the component,
  but only once the component has been up longer than its cool-down time.
  Repair sends the main process a kill signal through `systemctl kill`. For
  docker it also first sends `SIGUSR1` to `dockerd`.

## Examples

Matching the latest log lines:

```python
from datetime import datetime

from nodeproblem.log_buffer import LogBuffer
from nodeproblem.types import Log

buffer = LogBuffer(4)
for text in ["a1", "b2", "c3", "d4", "e5"]:
    buffer.push(Log(timestamp=datetime.now(), message=text))

print(str(buffer))  # "b2\nc3\nd4\ne5"
print([log.message for log in buffer.match(r"[a-z]\d\n[a-z]\d")])  # ['d4', 'e5']
```

Translating a kernel log line:

```python
from nodeproblem.translator import Translator

translator = Translator({
    "timestamp": "^.{15}",
    "message": "kernel: \\[.*\\] (.*)",
    "timestampFormat": "Jan _2 15:04:05",
})
log = translator.translate(
    "May  1 12:23:45 hostname kernel: [0.000000] component: log message"
)
print(log.message)  # "component: log message"
```

A monitor configuration file:

```json
{
  "plugin": "filelog",
  "pluginConfig": {
    "timestamp": "^.{15}",
    "message": "kernel: \\[.*\\] (.*)",
    "timestampFormat": "Jan _2 15:04:05"
  },
  "logPath": "/var/log/kern.log",
  "lookback": "5m",
  "source": "kernel-monitor",
  "conditions": [{"type": "KernelDeadlock", "reason": "KernelHasNoDeadlock"}],
  "rules": [
    {"type": "temporary", "reason": "OOMKilling", "pattern": "Killed process \\d+ .*"},
    {"type": "permanent", "condition": "KernelDeadlock", "reason": "DockerHung",
     "pattern": "task docker:\\w+ blocked for more than \\w+ seconds\\."}
  ]
}
```

Recording problem metrics in memory:

```python
from nodeproblem.problem_metrics import new_problem_metrics_manager_stub

manager, counter, gauge = new_problem_metrics_manager_stub()
manager.increment_problem_counter("OOMKilling", 1)
manager.set_problem_gauge("KernelDeadlock", "DockerHung", True)
print(counter.list_metrics())
print(gauge.list_metrics())
```

Parsing log-pattern thresholds for the health checker:

```python
from nodeproblem.healthchecker_types import LogPatternFlag

flag = LogPatternFlag()
flag.set("10:pattern1,20:pattern2")
print(str(flag))  # "pattern1:10 pattern2:20"
```

## Health check endpoints

The kubelet and kube-proxy endpoints default to `127.0.0.1` on ports
`10248` and `10256`. You can override them with the environment variables
`HOST_ADDRESS`, `KUBELET_PORT` and `KUBEPROXY_PORT`. Both
`kubelet_health_check_endpoint` and `kube_proxy_health_check_endpoint` take
an optional mapping of these variables, and read `os.environ` when none is
given. For example, `kubelet_health_check_endpoint({})` returns
`http://127.0.0.1:10248/healthz`.

## What it does not do

- It has no command-line program or long-running service of its own. You
  wire monitors and exporters together in your own code and call
  `ProblemDetector.run`.
- It ships no exporters. `Exporter` is an interface for you to implement,
  for example to update a cluster's node status or to publish metrics.
- Problem metrics are kept in memory only. Nothing serves or pushes them to
  a metrics backend.
- Only the `filelog` watcher is included. There is no watcher that reads
  the systemd journal or the kernel ring buffer directly.

## Requirements

Python 3.10 or later. The package has no third-party runtime dependencies.
`new_filelog_watcher` reads `/proc/uptime`. The health checker calls
`systemctl`, `journalctl`, `grep`, `wc`, `pkill`, `docker` or `crictl`, so
it expects a systemd-based Linux host.