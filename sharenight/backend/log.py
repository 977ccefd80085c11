"""Logging configuration using loguru.

loguru is the only sink.  Records from stdlib loggers (uvicorn, sqlalchemy,
boto3, Pillow ...) are forwarded through :class:`InterceptHandler`, so the
whole process shares one format, one level and one destination.

Two output modes: human-readable colored lines (default) or one JSON object
per line (``SHARENIGHT_LOG_JSON=true``) for log shippers.  An optional
rotating file sink mirrors stderr.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LINE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Third-party loggers and the most verbose level we let through from them.
LIBRARY_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "botocore": logging.WARNING,
    "boto3": logging.WARNING,
    "s3transfer": logging.WARNING,
    "PIL": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the original call-site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, json: bool = False, log_file: str | None = None) -> None:
    """Install the loguru sinks and route stdlib logging into them.

    Safe to call more than once; each call replaces the previous sinks.
    """
    level = level.upper()

    logger.remove()
    if json:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=LINE_FORMAT)
    if log_file:
        logger.add(log_file, level=level, format=LINE_FORMAT, colorize=False, rotation="20 MB", retention=5)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    logger.debug("Logging ready (level={}, json={}, file={})", level, json, log_file)
