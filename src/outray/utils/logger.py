"""
Logging utilities built on loguru.

The library only binds named loggers; sinks are configured by the
application (the CLI calls `configure_logging`).
"""

import sys
import traceback

from loguru import logger as _logger

from outray.models.enums import LogLevel

_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}


def _format_record(record) -> str:
    # Records logged outside get_logger() have no bound name.
    name = record["extra"].get("name", record["name"])
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        f"<cyan>{name}</cyan> - <level>{{message}}</level>\n{{exception}}"
    )


def get_logger(name: str):
    """Return a loguru logger bound to the given module name."""
    return _logger.bind(name=name)


def configure_logging(level: LogLevel | str = LogLevel.INFO) -> None:
    """
    Replace all loguru sinks with a single stderr sink.

    Args:
        level: Verbosity level. FULL also enables loguru's extended
            backtraces with variable values.
    """
    level = LogLevel(level)
    full = level == LogLevel.FULL

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=_LEVEL_MAP[level],
        format=_format_record,
        backtrace=full,
        diagnose=full,
    )


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback as a string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
