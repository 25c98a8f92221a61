"""Structured logging utilities for span-preserving XML processing.

Every record emitted through :class:`CorrelationLogger` carries the component
name and an optional correlation ID in its ``extra`` mapping so log output can
be filtered per operation.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from spanxml.shared.config import GlobalConfig

MS_PER_SECOND = 1000.0


class CorrelationLogger:
    """Logger that automatically includes correlation ID and component information."""

    def __init__(
        self,
        name: str,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
        level: int = logging.NOTSET
    ) -> None:
        """Initialize correlation logger.

        Args:
            name: Logger name (typically __name__)
            correlation_id: Optional correlation ID for request tracking
            component: Component name for structured logging
            level: Records below this level are dropped even when the
                underlying logger would emit them
        """
        self.logger = logging.getLogger(name)
        self.correlation_id = correlation_id
        self.component = component or name.split(".")[-1]
        self.level = level

    def _get_extra(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        combined_extra: Dict[str, Any] = {
            "component": self.component,
            "correlation_id": self.correlation_id,
        }
        if extra:
            combined_extra.update(extra)
        return combined_extra

    def _log(
        self,
        level: int,
        message: str,
        extra: Optional[Dict[str, Any]],
        exc_info: bool
    ) -> None:
        if self.is_enabled_for(level):
            self.logger.log(level, message, extra=self._get_extra(extra), exc_info=exc_info)

    def is_enabled_for(self, level: int) -> bool:
        """Check whether a level would be emitted, to skip building costly extras."""
        return level >= self.level and self.logger.isEnabledFor(level)

    def debug(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        """Log debug message with correlation info."""
        self._log(logging.DEBUG, message, extra, exc_info)

    def info(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        """Log info message with correlation info."""
        self._log(logging.INFO, message, extra, exc_info)

    def warning(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        """Log warning message with correlation info."""
        self._log(logging.WARNING, message, extra, exc_info)

    def error(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = True
    ) -> None:
        """Log error message with correlation info."""
        self._log(logging.ERROR, message, extra, exc_info)

    def exception(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log exception message with correlation info and traceback."""
        if self.is_enabled_for(logging.ERROR):
            self.logger.exception(message, extra=self._get_extra(extra))

    @contextmanager
    def timed(
        self,
        operation: str,
        extra: Optional[Dict[str, Any]] = None
    ) -> Iterator[Dict[str, Any]]:
        """Log the start and completion of an operation with its duration.

        The yielded dictionary can be filled by the caller; its contents are
        merged into the completion record.

        Args:
            operation: Human readable operation name
            extra: Additional data attached to both records

        Yields:
            Mutable mapping merged into the completion record
        """
        details: Dict[str, Any] = dict(extra or {})
        self.debug(f"Starting {operation}", extra=details)
        start_time = time.perf_counter()
        yield details
        details["processing_time_ms"] = (time.perf_counter() - start_time) * MS_PER_SECOND
        self.info(f"Completed {operation}", extra=details)


def get_logger(
    name: str,
    correlation_id: Optional[str] = None,
    component: Optional[str] = None,
    config: Optional[GlobalConfig] = None
) -> CorrelationLogger:
    """Get a correlation-aware logger instance.

    Args:
        name: Logger name (typically __name__)
        correlation_id: Optional correlation ID for request tracking
        component: Component name for structured logging
        config: Optional global settings; ``logging_level`` becomes the
            logger's threshold, and the correlation ID is dropped when
            ``enable_correlation_tracking`` is off

    Returns:
        CorrelationLogger instance
    """
    if config is None:
        return CorrelationLogger(name, correlation_id, component)

    if not config.enable_correlation_tracking:
        correlation_id = None
    level = logging.getLevelName(config.logging_level)
    return CorrelationLogger(name, correlation_id, component, level)
