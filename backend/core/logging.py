"""
Centralized logging configuration.

Call setup_logging() once at application startup, before the app factory
builds the services, so every named component logger picks up the format.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# The client polls these every few seconds
POLLED_PATHS = ("/garden/fields ", "/garden/scheduler ")


class SuppressPollingLogsFilter(logging.Filter):
    """Drop uvicorn access lines for the field and scheduler polling endpoints."""

    def __init__(self, paths=POLLED_PATHS):
        super().__init__()
        self.paths = tuple(paths)

    def filter(self, record):
        message = record.getMessage()
        return not any(path in message for path in self.paths)


def setup_logging(debug_mode: bool = True, log_level: Optional[int] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        debug_mode: If True, log at DEBUG (unless log_level is explicitly provided)
        log_level: Explicit log level to use (overrides debug_mode)
    """
    if log_level is None:
        log_level = logging.DEBUG if debug_mode else logging.INFO

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,  # Override any existing configuration
    )

    logging.getLogger("uvicorn.access").addFilter(SuppressPollingLogsFilter())

    # APScheduler logs every sweep run at INFO; sweep results are logged by SpawnScheduler
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)

    logging.getLogger("Logging").info(f"Logging configured with level: {logging.getLevelName(log_level)}")


def get_logger(name: str) -> logging.Logger:
    """Get a named component logger."""
    return logging.getLogger(name)
