"""
minirag - Logging
==================
Logger factory shared by every minirag module.

Level resolution, first match wins:
  • ``settings.LOG_LEVEL`` when set (``DEBUG`` … ``ERROR``)
  • ``settings.ENV == "dev"``  → DEBUG
  • ``settings.ENV == "prod"`` → WARNING

Log lines go to stdout.  The CLI prints its results to stdout too, so
``minirag ask`` in ``prod`` mode shows only the answer plus warnings.
Loggers do not propagate, so an application that embeds minirag and
configures the root logger never sees duplicate lines.

Usage:
    from minirag.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[STORE] Loaded %d record(s)", 3)
"""

import logging
import sys

from minirag.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(env: str, log_level: str | None = None) -> int:
    """Map ``ENV`` / ``LOG_LEVEL`` to a ``logging`` level constant."""
    if log_level:
        return logging.getLevelName(log_level.upper())
    return _ENV_LEVEL_MAP.get(env, logging.INFO)


_DEFAULT_LEVEL = resolve_level(settings.ENV, settings.LOG_LEVEL)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the named logger, attaching the stdout handler on first use.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit level; defaults to the one resolved from settings.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(console_handler)

        logger.propagate = False

    return logger
