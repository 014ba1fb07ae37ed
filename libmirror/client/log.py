"""Logging configuration using loguru.

Records from the stdlib loggers (httpx, and the backend / matcher modules)
are routed into loguru so the CLI writes one stream to stderr.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

_TRANSPORT_LOGGERS = ("httpx", "httpcore")

_CLI_FORMAT = "<level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>"


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    """Send loguru output for *level* and above to stderr.

    Transport loggers stay at WARNING unless *level* is DEBUG, where request
    lines from httpx are useful for diagnosing backend calls.
    """
    level = level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=_CLI_FORMAT)
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    transport_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
