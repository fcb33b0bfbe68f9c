"""Loguru setup shared by the API lifespan and the CLI.

``setup_logging(settings)`` installs the loguru sinks described by the
``LOG_*`` settings and routes stdlib ``logging`` from the model and HTTP
libraries through loguru. Calling it again replaces the previous sinks, so
the CLI and the API can each configure logging for their own run.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from phase_assistant.config import Settings

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Logged at INFO per request by the OpenAI and Azure clients
CHATTY_LOGGERS = ("httpx", "httpcore", "openai")

INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "fastapi",
    "pydantic_ai",
    *CHATTY_LOGGERS,
)


class InterceptHandler(logging.Handler):
    """Redirect stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _add_sink(sink, level: str, json: bool, **options) -> None:
    if json:
        logger.add(sink, level=level, serialize=True, **options)
    else:
        logger.add(sink, level=level, format=TEXT_FORMAT, **options)


def setup_logging(settings: Settings) -> None:
    """Configure loguru from ``log_level``, ``log_json`` and ``log_file``.

    A stderr sink is always installed. When ``log_file`` is set, a second
    sink writes the same records there with size-based rotation. Request
    chatter from httpx and the OpenAI client is raised to WARNING unless
    the level is DEBUG.
    """
    level = settings.log_level.upper()
    logger.remove()

    _add_sink(sys.stderr, level, settings.log_json, colorize=not settings.log_json)
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        _add_sink(
            settings.log_file,
            level,
            settings.log_json,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            encoding="utf-8",
        )

    intercept = InterceptHandler()
    for name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [intercept]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.NOTSET)

    if level != "DEBUG":
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.root.handlers = [intercept]
    logging.root.setLevel(logging.DEBUG)
    logger.debug("Logging configured | level={} json={} file={}", level, settings.log_json, settings.log_file)
