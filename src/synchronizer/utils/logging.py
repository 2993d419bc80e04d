"""Logging setup for the synchronizer: structlog on top of stdlib handlers."""

import functools
import inspect
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import List, Optional

import structlog
import colorlog
from structlog.typing import Processor

CONSOLE_FORMAT = "%(log_color)s%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

LEVEL_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# Owned by setup_logging; replaced on every call
_handlers: List[logging.Handler] = []


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root logger.

    Arguments left as None fall back to the LOG_* application settings.
    Calling this again (tests do, the CLI does once) swaps out the handlers
    installed by the previous call instead of stacking new ones.
    """
    from ..config.settings import get_settings

    defaults = get_settings().logging
    level = getattr(logging, (log_level or defaults.level).upper())
    format_type = log_format or defaults.format
    file_path = log_file or defaults.file_path

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    while _handlers:
        previous = _handlers.pop()
        root_logger.removeHandler(previous)
        previous.close()

    structlog.configure(
        processors=_processors(format_type),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if file_path:
        _install(_file_handler(file_path), level)
    _install(_console_handler(), level)


def _processors(format_type: str) -> List[Processor]:
    processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def _file_handler(file_path: str) -> logging.Handler:
    path = Path(file_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    # No color codes in the file
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _console_handler() -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(colorlog.ColoredFormatter(
        CONSOLE_FORMAT,
        datefmt=DATE_FORMAT,
        reset=True,
        log_colors=LEVEL_COLORS
    ))
    return handler


def _install(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    logging.getLogger().addHandler(handler)
    _handlers.append(handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def timed(operation: str):
    """Log how long ``operation`` took; works on plain and async callables.

    Success is logged at debug level, failure at error level with the
    exception text, and the exception is re-raised.
    """
    def decorator(func):
        logger = get_logger(func.__module__)

        def finished(started: float, error: Optional[BaseException] = None) -> None:
            elapsed = f"{time.perf_counter() - started:.4f}s"
            if error is None:
                logger.debug(f"{operation} finished", elapsed=elapsed)
            else:
                logger.error(f"{operation} failed", elapsed=elapsed, error=str(error))

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    finished(started, e)
                    raise
                finished(started)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                finished(started, e)
                raise
            finished(started)
            return result

        return wrapper

    return decorator
