"""Process-wide logging setup for the workload service."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from workload.utils.config import get_settings


_LOGGER_INITIALIZED = False

# Connection-pool chatter from requests drowns out capacity decisions at DEBUG.
_NOISY_LOGGERS = ("urllib3", "urllib3.connectionpool")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once, at ``level`` or the configured default."""

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring logging on first use."""
    configure_logging()
    return logging.getLogger(name)
