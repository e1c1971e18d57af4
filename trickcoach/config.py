"""Runtime configuration read from the environment, and logging setup.

Library logging is off until configure_logging() is called, so importing
trickcoach never writes to the host application's sinks.
"""

from __future__ import annotations

import os
import sys

from loguru import logger


def env_int(name: str, default: int) -> int:
    """Read an integer setting.

    Raises:
        ValueError: If the variable is set but is not an integer.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


LOG_LEVEL: str = os.getenv('TRICKCOACH_LOG_LEVEL', 'WARNING')
BUSY_BRANCHING: str = os.getenv('TRICKCOACH_BUSY_BRANCHING', 'strict')
MAX_PASSES: int = env_int('TRICKCOACH_MAX_PASSES', 200)

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <level>{message}</level>"

logger.disable('trickcoach')


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with a compact stderr sink and enable
    the trickcoach loggers."""
    logger.remove()
    logger.add(sys.stderr, level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
    logger.enable('trickcoach')
