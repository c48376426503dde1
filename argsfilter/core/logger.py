# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Logging for args_filter.

Console and rotating-file output for the ``argsfilter`` logger tree. Records
are tagged with the phase they were emitted in (``config`` while blocks are
compiled, ``request`` while query strings are evaluated) and the variable
being processed, so a compile error or matcher fault can be traced back to
its block.
"""

import contextvars
import logging
import os
import sys
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional, Tuple

_LOG_CONTEXT: contextvars.ContextVar[Tuple[str, str]] = contextvars.ContextVar(
    "argsfilter_log_context", default=("-", "-")
)


@contextmanager
def log_context(phase: str, variable: str = "-") -> Iterator[None]:
    """Tag log records emitted inside the block with phase and variable."""
    token = _LOG_CONTEXT.set((phase, variable))
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def current_log_context() -> Tuple[str, str]:
    return _LOG_CONTEXT.get()


class ContextFilter(logging.Filter):
    """Copies the active log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.phase, record.variable = _LOG_CONTEXT.get()
        return True


class ArgsFilterLogger:
    """
    Handler setup for the args_filter logger tree.

    Features:
    - Console logging to stderr
    - Optional file logging with rotation
    - Phase/variable tagging on every record
    """

    def __init__(
        self,
        name: str = "argsfilter",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        console_output: bool = True,
        file_output: bool = False
    ):
        self.name = name
        self.logger = logging.getLogger(name)

        # Clear any existing handlers
        self.logger.handlers.clear()

        self.logger.setLevel(self._parse_level(level))

        console_formatter = logging.Formatter(
            fmt='[%(asctime)s] [%(name)s:%(levelname)s] [%(phase)s %(variable)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_formatter = logging.Formatter(
            fmt='%(asctime)s | %(name)s | %(levelname)s | %(phase)s | %(variable)s | %(filename)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        context_filter = ContextFilter()

        if console_output:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(console_formatter)
            console_handler.setLevel(self._parse_level(level))
            console_handler.addFilter(context_filter)
            self.logger.addHandler(console_handler)

        if file_output and log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"{name}.log"

            # Rotate after 10MB, keep 5 backup files
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setFormatter(file_formatter)
            file_handler.setLevel(logging.DEBUG)  # File gets everything
            file_handler.addFilter(context_filter)
            self.logger.addHandler(file_handler)

    def _parse_level(self, level: str) -> int:
        """Convert string level to logging constant"""
        levels = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL
        }
        return levels.get(level.upper(), logging.INFO)

    def set_level(self, level: str):
        """Change log level dynamically"""
        self.logger.setLevel(self._parse_level(level))
        for handler in self.logger.handlers:
            if not isinstance(handler, RotatingFileHandler):
                handler.setLevel(self._parse_level(level))


_loggers = {}


def get_logger(
    name: str = "argsfilter",
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> ArgsFilterLogger:
    """
    Get or create a logger instance.

    Args:
        name: Logger name (``argsfilter`` covers every module)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log file; None disables it

    Returns:
        ArgsFilterLogger instance
    """
    if name not in _loggers:
        log_level = level or os.getenv("ARGSFILTER_LOG_LEVEL", "INFO")

        disable_file_logging = os.getenv("ARGSFILTER_NO_FILE_LOGS", "false").lower() == "true"

        _loggers[name] = ArgsFilterLogger(
            name=name,
            level=log_level,
            log_dir=log_dir,
            file_output=not disable_file_logging and log_dir is not None
        )
    elif level:
        _loggers[name].set_level(level)

    return _loggers[name]
