"""Registry of log watcher plugins."""

from __future__ import annotations

import logging
from typing import Callable

from nodeproblem.filelog import new_filelog_watcher
from nodeproblem.types import LogWatcher, WatcherConfig

logger = logging.getLogger(__name__)

FILELOG_PLUGIN_NAME = "filelog"

_create_funcs: dict[str, Callable[[WatcherConfig], LogWatcher]] = {}


class UnknownLogWatcherError(LookupError):
    """Raised when no log watcher is registered for a plugin."""


def register_log_watcher(name: str, create: Callable[[WatcherConfig], LogWatcher]) -> None:
    """Register the create function of a log watcher plugin."""
    _create_funcs[name] = create


def get_log_watcher(config: WatcherConfig) -> LogWatcher:
    """Create the log watcher for the configured plugin."""
    try:
        create = _create_funcs[config.plugin]
    except KeyError:
        raise UnknownLogWatcherError(
            f"No create function found for plugin {config.plugin!r}"
        ) from None
    logger.info("Use log watcher of plugin %r", config.plugin)
    return create(config)


register_log_watcher(FILELOG_PLUGIN_NAME, new_filelog_watcher)