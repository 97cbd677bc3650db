"""Utility modules for paramretry.

Provides:
- Structured logging configuration
"""

from .logging import LogContext, build_processors, configure_from_settings, configure_logging, get_logger

__all__ = [
    "build_processors",
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "LogContext",
]
