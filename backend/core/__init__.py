"""
Core application modules.

This package contains core functionality like settings and logging configuration.
"""

from .logging import get_logger, setup_logging
from .settings import Settings, get_settings, reset_settings

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "setup_logging",
    "get_logger",
]
