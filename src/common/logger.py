"""
Centralized logging configuration for the job aggregation pipeline.

Provides request- and source-tagged logging so a single search can be
followed across cache tiers and adapters.
"""

import logging
import os
import sys
from typing import Optional


# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("pymongo", "urllib3", "httpx", "httpcore", "asyncio", "openai")


class SearchLogger:
    """
    Structured logger for a single search request.

    Adds request_id and source tags to all log messages.
    """

    def __init__(
        self,
        name: str,
        request_id: Optional[str] = None,
        source: Optional[str] = None,
    ):
        """
        Initialize search logger.

        Args:
            name: Logger name (usually __name__)
            request_id: Optional request identifier for correlation
            source: Optional adapter or cache tier name (e.g., "eluta", "fast_cache")
        """
        self.logger = logging.getLogger(name)
        self.request_id = request_id
        self.source = source

    def bind(self, source: str) -> "SearchLogger":
        """Return a logger for the same request tagged with another source."""
        return SearchLogger(self.logger.name, self.request_id, source)

    def _format_message(self, message: str) -> str:
        prefix_parts = []
        if self.request_id:
            prefix_parts.append(f"[req:{self.request_id[:8]}]")
        if self.source:
            prefix_parts.append(f"[{self.source}]")

        if prefix_parts:
            return f"{' '.join(prefix_parts)} {message}"
        return message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message), **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message), **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(self._format_message(message), **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message), **kwargs)


def setup_logging(level: Optional[str] = None, format: Optional[str] = None) -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env.
        format: Log format ("simple" or "json"). Defaults to LOG_FORMAT env.
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    format = format or os.getenv("LOG_FORMAT", "simple")
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if format == "json":
        # Parseable by log aggregators
        formatter = logging.Formatter(
            '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    if log_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(
    name: str,
    request_id: Optional[str] = None,
    source: Optional[str] = None,
) -> SearchLogger:
    """
    Get a search logger instance.

    Args:
        name: Logger name (usually __name__)
        request_id: Optional request identifier
        source: Optional adapter/tier tag

    Returns:
        SearchLogger instance
    """
    return SearchLogger(name, request_id, source)
