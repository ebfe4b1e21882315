"""
Logging helpers for FlowChat: operation timing and HTTP request logging.
"""

import logging
import time
from typing import Optional

from FlowChat.core.logging import get_logger


class LogTimer:
    """
    Context manager for timing operations and logging the duration.

    Example:
        with LogTimer("catalog_load", logger):
            await sync.load_catalog()
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.DEBUG
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.level = level
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> 'LogTimer':
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time
        if exc_type is not None:
            self.logger.error(
                "Operation '%s' failed after %.4f seconds: %s",
                self.operation, self.duration, exc_val
            )
        else:
            self.logger.log(
                self.level,
                "Operation '%s' completed in %.4f seconds",
                self.operation, self.duration
            )


class RequestLogger:
    """
    Utility for logging HTTP requests served by the blob store emulator.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)

    def log_request(self, method: str, path: str, status_code: int, duration: float,
                    key: Optional[str] = None) -> None:
        """
        Log an HTTP request.

        4xx/5xx responses log at WARNING, everything else at INFO.
        """
        level = logging.INFO if status_code < 400 else logging.WARNING
        message = f"{method} {path} - {status_code} ({duration:.4f}s)"
        if key:
            message += f" - key: {key}"
        self.logger.log(level, message)


__all__ = ["LogTimer", "RequestLogger"]
