"""
Core Logging Interfaces

Defines the record, backend and logger contracts used by every component.
Components receive a logger through constructor injection and only ever
talk to `LoggerInterface`, so tests can substitute a `Mock`.
"""

import time
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Dict, Optional
from dataclasses import dataclass, field


class LogLevel(IntEnum):
    """Log levels with numeric values for fast comparison."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(IntEnum):
    """Log types for routing decisions."""
    TEXT = 1      # Regular log messages
    METRIC = 2    # Numeric metrics (latency, counters)
    AUDIT = 3     # Order lifecycle trail


@dataclass
class LogRecord:
    """
    Lightweight log record.

    Formatting happens in backends, not here.
    """
    timestamp: float
    level: LogLevel
    log_type: LogType
    logger_name: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    # Only used when log_type == METRIC
    metric_name: Optional[str] = None
    metric_value: Optional[float] = None
    metric_tags: Optional[Dict[str, Any]] = None

    # Correlation tracking
    correlation_id: Optional[str] = None
    exchange: Optional[str] = None
    symbol: Optional[str] = None

    @classmethod
    def create_text(cls, level: LogLevel, logger_name: str, message: str, **context) -> 'LogRecord':
        return cls(
            timestamp=time.time(),
            level=level,
            log_type=LogType.TEXT,
            logger_name=logger_name,
            message=message,
            context=context
        )

    @classmethod
    def create_metric(cls, logger_name: str, metric_name: str, value: float, **tags) -> 'LogRecord':
        return cls(
            timestamp=time.time(),
            level=LogLevel.INFO,
            log_type=LogType.METRIC,
            logger_name=logger_name,
            message="",
            metric_name=metric_name,
            metric_value=value,
            metric_tags=tags
        )


class LogBackend(ABC):
    """
    Abstract base for all logging backends.

    Each backend handles its own formatting and output. Backends that can
    write without awaiting implement `write_sync`; the logger calls it
    directly and only queues records for backends that must be awaited.
    """

    supports_sync = False

    def __init__(self, name: str):
        self.name = name
        self.enabled = True
        self._error_count = 0
        self._max_errors = 10  # Disable after too many failures

    @abstractmethod
    def should_handle(self, record: LogRecord) -> bool:
        """Fast check if this backend should process the record."""
        pass

    @abstractmethod
    async def write(self, record: LogRecord) -> None:
        """Write log record to backend destination."""
        pass

    def write_sync(self, record: LogRecord) -> None:
        raise NotImplementedError(f"Backend {self.name} has no synchronous write")

    @abstractmethod
    async def flush(self) -> None:
        """Flush any buffered data."""
        pass

    def _handle_error(self, error: Exception) -> None:
        self._error_count += 1
        if self._error_count >= self._max_errors:
            self.enabled = False
            print(f"Backend {self.name} disabled after {self._max_errors} errors: {error}")


class LoggerInterface(ABC):
    """Logger contract injected into every component as `self.logger`."""

    @abstractmethod
    def debug(self, msg: str, **context) -> None:
        pass

    @abstractmethod
    def info(self, msg: str, **context) -> None:
        pass

    @abstractmethod
    def warning(self, msg: str, **context) -> None:
        pass

    @abstractmethod
    def error(self, msg: str, **context) -> None:
        pass

    @abstractmethod
    def critical(self, msg: str, **context) -> None:
        pass

    @abstractmethod
    def metric(self, name: str, value: float, **tags) -> None:
        """Log metric value."""
        pass

    @abstractmethod
    def latency(self, operation: str, duration_ms: float, **tags) -> None:
        pass

    @abstractmethod
    def counter(self, name: str, value: int = 1, **tags) -> None:
        pass

    @abstractmethod
    def audit(self, event: str, **context) -> None:
        """Log audit event (order lifecycle transitions)."""
        pass

    @abstractmethod
    def set_context(self, **context) -> None:
        """Set persistent context for all logs from this logger."""
        pass

    @abstractmethod
    async def flush(self) -> None:
        pass
