"""
Logging setup built on loguru.

Modules obtain a logger with ``get_logger(__name__)``. ``configure_logging``
must run once at startup, before the listener is created, so that asyncio's
own stdlib log records are routed through the same sink.
"""

import logging
import sys
import traceback

from loguru import logger

from wsveil.models.enums import LogLevel

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - <level>{message}</level>"
)

_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

logger.configure(extra={"component": "wsveil"})


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records (asyncio, etc.) to loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that issued the logging call
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(component=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def configure_logging(level: LogLevel = LogLevel.INFO, log_file: str = ""):
    """
    Install the console sink (and optionally a file sink).

    Args:
        level: Verbosity level.
        log_file: Path of an additional log file, empty for console only.
    """
    loguru_level = _LEVEL_MAP.get(LogLevel(level), "INFO")
    full = LogLevel(level) == LogLevel.FULL

    logger.remove()
    logger.add(
        sys.stderr,
        level=loguru_level,
        format=LOG_FORMAT,
        backtrace=full,
        diagnose=full,
        enqueue=False,
    )
    if log_file:
        logger.add(
            log_file,
            level=loguru_level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            backtrace=full,
            diagnose=full,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def get_logger(name: str):
    """Return a logger tagged with the short name of the calling module."""
    return logger.bind(component=name.rsplit(".", 1)[-1])


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback for debug output."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
