"""
Error handling helpers for repokit.

Repository code propagates every failure; these helpers only make sure a
failure is logged on its way out, or, for explicitly optional steps such as
schema validation, logged and skipped.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Union

from .logger import RepositoryLogger

LoggerLike = Union[logging.Logger, RepositoryLogger]


@contextmanager
def log_on_exception(
    logger: LoggerLike,
    operation: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
) -> Iterator[None]:
    """
    Log an exception raised inside the block, then re-raise it.

    Usage:
        with log_on_exception(logger, "Initialize MongoDB"):
            await initializer.initialize()

    Args:
        logger: Logger instance to use
        operation: Operation description for the log message
        level: Log level (default: ERROR)
        include_traceback: Whether to include stack trace in log
    """
    try:
        yield
    except Exception as e:
        logger.log(level, f"[{operation}] Failed: {e}", exc_info=include_traceback)
        raise


@contextmanager
def warn_on_exception(logger: LoggerLike, operation: str) -> Iterator[None]:
    """
    Log an exception raised inside the block as a warning and continue.

    Only for optional steps whose failure must not abort the caller.
    """
    try:
        yield
    except Exception as e:
        logger.warning(f"[{operation}] Failed: {e}", exc_info=True)
