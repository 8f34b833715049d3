"""Registry of problem daemon types and the factories that create them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from nodeproblem.types import Monitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProblemDaemonHandler:
    """Factory for a type of problem daemon plus its command-line description."""

    create_problem_daemon: Callable[[str], Monitor]
    cmd_option_description: str = ""


class ProblemDaemonNotFoundError(LookupError):
    """Raised when no handler is registered for a problem daemon type."""


_handlers: dict[str, ProblemDaemonHandler] = {}


def register(problem_daemon_type: str, handler: ProblemDaemonHandler) -> None:
    """Register the handler used to create problem daemons of a type."""
    _handlers[problem_daemon_type] = handler


def unregister_all() -> None:
    """Forget every registered handler."""
    _handlers.clear()


def get_problem_daemon_names() -> list[str]:
    """Return all registered problem daemon types."""
    return list(_handlers)


def get_problem_daemon_handler(problem_daemon_type: str) -> ProblemDaemonHandler:
    """Return the handler for a type, raising if none is registered."""
    try:
        return _handlers[problem_daemon_type]
    except KeyError:
        raise ProblemDaemonNotFoundError(
            f"Problem daemon handler for {problem_daemon_type} does not exist"
        ) from None


def new_problem_daemons(monitor_config_paths: Mapping[str, Iterable[str]]) -> list[Monitor]:
    """Create one problem daemon per distinct configuration path."""
    daemons: dict[str, Monitor] = {}
    for problem_daemon_type, configs in monitor_config_paths.items():
        for config in configs:
            if config in daemons:
                logger.warning("Duplicated problem daemon configuration %r", config)
                continue
            handler = get_problem_daemon_handler(problem_daemon_type)
            daemons[config] = handler.create_problem_daemon(config)
    return list(daemons.values())