"""
Centralized logging configuration for repokit.

Provides collection-tagged loggers so initialization and repository
activity can be correlated per collection when debugging.
Configuring the root logger at DEBUG also turns on debug mode for
repository loggers created afterwards.
"""

import logging
import sys
from typing import Optional, TextIO


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set by setup_logging()
_debug_enabled = False


def is_debug_mode() -> bool:
    return _debug_enabled


class RepositoryLogger:
    """
    Structured logger for repository and initializer code.

    Adds the database/collection the message refers to as a prefix.
    """

    def __init__(
        self,
        name: str,
        collection: Optional[str] = None,
        debug_mode: Optional[bool] = None
    ):
        """
        Initialize repository logger.

        Args:
            name: Logger name (usually __name__)
            collection: Optional collection name used as message prefix
            debug_mode: If True, enables DEBUG level for this logger.
                       If None, follows setup_logging().
        """
        self.logger = logging.getLogger(name)
        self.collection = collection

        self._debug_mode = debug_mode if debug_mode is not None else is_debug_mode()
        if self._debug_mode:
            self.logger.setLevel(logging.DEBUG)

    @property
    def level(self) -> int:
        """Get current logging level."""
        return self.logger.level

    def bind(self, collection: str) -> "RepositoryLogger":
        """Return a logger with the same name tagged with another collection."""
        return RepositoryLogger(self.logger.name, collection, self._debug_mode)

    def _format_message(self, message: str) -> str:
        if self.collection:
            return f"[{self.collection}] {message}"
        return message

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(self._format_message(message), **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(self._format_message(message), **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._format_message(message), **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self.logger.error(self._format_message(message), **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message), **kwargs)

    def log(self, level: int, message: str, **kwargs):
        """Log at an explicit level."""
        self.logger.log(level, self._format_message(message), **kwargs)


def setup_logging(
    level: str = "INFO",
    formatter: Optional[logging.Formatter] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Replace the root handlers with a single stream handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        formatter: Formatter for the handler; DEFAULT_FORMAT when omitted
        stream: Output stream, stderr when omitted

    Returns:
        The installed handler
    """
    global _debug_enabled
    log_level = getattr(logging, level.upper(), logging.INFO)
    _debug_enabled = log_level <= logging.DEBUG

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter or logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)
    return handler


def get_logger(
    name: str,
    collection: Optional[str] = None,
    debug_mode: Optional[bool] = None
) -> RepositoryLogger:
    """
    Get a repository logger instance.

    Args:
        name: Logger name (usually __name__)
        collection: Optional collection name
        debug_mode: If True, enables DEBUG level. If None, follows setup_logging().

    Returns:
        RepositoryLogger instance
    """
    return RepositoryLogger(name, collection, debug_mode)
