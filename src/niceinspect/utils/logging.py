"""
Logging utilities for the niceinspect library.

Library code only ever asks for a logger:
    ```python
    from niceinspect.utils.logging import get_logger
    logger = get_logger(__name__)
    logger.info("marker icon loaded")
    ```

Standalone demos and scripts that call ui.run() may turn on console output:
    ```python
    from niceinspect.utils.logging import configure_logging
    configure_logging(level="DEBUG")
    ```

When niceinspect is embedded in an application that already configured
logging, do not call configure_logging(); records propagate to the
application's handlers. niceinspect never writes log files.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Union

LOGGER_NAME = "niceinspect"
LEVEL_ENV_VAR = "NICEINSPECT_LOG_LEVEL"

DEFAULT_FMT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d:%(funcName)s: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Optional[Union[str, int]]) -> int:
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR, "INFO")
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def configure_logging(
    level: Optional[Union[str, int]] = None,
    *,
    fmt: Optional[str] = None,
    datefmt: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Attach a stderr handler to the 'niceinspect' logger (never root).

    Parameters
    ----------
    level:
        Logging level (e.g. "DEBUG", "INFO"). Defaults to the
        NICEINSPECT_LOG_LEVEL env var, or "INFO" if unset.
    fmt:
        Log message format.
    datefmt:
        Date format.
    force:
        If True, drop existing handlers first so the call reconfigures.
        If False, a second call is a no-op once a stderr handler exists.
    """
    resolved = _resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)

    formatter = logging.Formatter(
        fmt=fmt or DEFAULT_FMT,
        datefmt=datefmt or DEFAULT_DATEFMT,
    )

    if force:
        for h in logger.handlers[:]:
            h.close()
            logger.removeHandler(h)
    else:
        for h in logger.handlers:
            if isinstance(h, logging.StreamHandler) and h.stream is sys.stderr:
                h.setLevel(resolved)
                return

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(resolved)
    console.setFormatter(formatter)
    logger.addHandler(console)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return logging.getLogger(name), or the package logger if name is None."""
    return logging.getLogger(name or LOGGER_NAME)
