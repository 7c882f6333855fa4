"""Structured logging helpers shared by every watchdog component."""

import logging
from typing import Optional

from .config import configure_logging
from .context import log_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that stamps a component name onto every record.

    Fields passed through ``extra`` on the individual call win over the
    adapter defaults.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Return a module logger, optionally bound to a component label.

    Args:
        name: Logger name (typically __name__)
        component: Component label added to every record (e.g. "coordinator")

    Example:
        >>> logger = get_logger(__name__, component="coordinator")
        >>> logger.info("Event processed", extra={"event": "watchdog.event.completed"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger


__all__ = ["ComponentLoggerAdapter", "configure_logging", "get_logger", "log_context"]
