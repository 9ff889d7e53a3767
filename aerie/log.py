"""
Logging setup for the ``aerie`` logger hierarchy.

Provides:
- configure_logging: handler + formatter from a LoggerConfig
- JsonLogFormatter: one JSON object per record
- timed: debug-level duration logging, enabled with PROFILE_API=1
"""

from __future__ import annotations

import functools
import inspect
import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

from .config import ConfigError, LoggerConfig


F = TypeVar("F", bound=Callable[..., Any])

ROOT_LOGGER = "aerie"
PROFILE_ENV = "PROFILE_API"

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


class JsonLogFormatter(logging.Formatter):
    """JSON-structured log output."""

    def __init__(self, *, log_timestamp: bool = False):
        super().__init__()
        self.log_timestamp = log_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.log_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _string_formatter(log_timestamp: bool) -> logging.Formatter:
    fmt = "%(levelname)s %(name)s - %(message)s"
    if log_timestamp:
        fmt = "%(asctime)s " + fmt
    return logging.Formatter(fmt)


def configure_logging(config: Optional[LoggerConfig] = None) -> logging.Logger:
    """
    Configure the ``aerie`` logger from ``config``.

    Replaces any handler installed by a previous call, so it is safe to
    call once per app instance.
    """
    config = config or LoggerConfig()
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        if getattr(handler, "_aerie_handler", False):
            logger.removeHandler(handler)

    level_name = (config.level or "info").lower()
    if level_name == "off":
        logger.disabled = True
        return logger
    if level_name not in _LEVELS:
        raise ConfigError(f"Unknown log level '{config.level}'", level=config.level)

    if config.format == "json":
        formatter: logging.Formatter = JsonLogFormatter(log_timestamp=config.log_timestamp)
    elif config.format == "string":
        formatter = _string_formatter(config.log_timestamp)
    else:
        raise ConfigError(f"Unknown log format '{config.format}'", format=config.format)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler._aerie_handler = True

    logger.disabled = False
    logger.setLevel(_LEVELS[level_name])
    logger.addHandler(handler)
    return logger


def profiling_enabled() -> bool:
    return os.environ.get(PROFILE_ENV) == "1"


def timed(func: F) -> F:
    """
    Log how long ``func`` takes at debug level when PROFILE_API=1.

    Works for plain and async functions; the check happens per call so
    the variable can be toggled at runtime.
    """
    timing_logger = logging.getLogger(f"{ROOT_LOGGER}.profile")
    label = func.__qualname__

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            if not profiling_enabled():
                return await func(*args, **kwargs)
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                timing_logger.debug("%s took %.3fms", label, (time.perf_counter() - start) * 1000)
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not profiling_enabled():
            return func(*args, **kwargs)
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            timing_logger.debug("%s took %.3fms", label, (time.perf_counter() - start) * 1000)
    return wrapper
