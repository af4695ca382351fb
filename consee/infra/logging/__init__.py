"""Logging configuration and formatters."""

from __future__ import annotations

from .config import configure_logging, reset_logging_state, setup_logging
from .formatters import JSONFormatter

__all__ = ["JSONFormatter", "configure_logging", "reset_logging_state", "setup_logging"]
