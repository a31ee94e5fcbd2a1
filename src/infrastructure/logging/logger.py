"""
Structured Logger Implementation

Logger with persistent context, metric records and pluggable backends.
Backends that write synchronously (console, metrics) are called inline;
backends that must be awaited (file) receive records through a bounded
queue drained by a background task on the running event loop.
"""

import asyncio
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from .interfaces import LoggerInterface, LogBackend, LogRecord, LogLevel, LogType


class StructuredLogger(LoggerInterface):
    """
    Logger with context management and multiple backends.

    Context keys `correlation_id`, `exchange` and `symbol` are lifted onto
    the record itself so backends can render them consistently.
    """

    def __init__(self, name: str, backends: List[LogBackend],
                 default_context: Optional[Dict[str, Any]] = None,
                 max_pending: int = 10000):
        self.name = name
        self.backends = backends
        self.context: Dict[str, Any] = dict(default_context or {})

        self._pending: Deque[Tuple[LogBackend, LogRecord]] = deque(maxlen=max_pending)
        self._drain_task: Optional[asyncio.Task] = None

    def _log(self, level: LogLevel, msg: str, log_type: LogType = LogType.TEXT, **context) -> None:
        full_context = {**self.context, **context}

        correlation_id = full_context.pop('correlation_id', None)
        exchange = full_context.pop('exchange', None)
        symbol = full_context.pop('symbol', None)

        record = LogRecord(
            timestamp=time.time(),
            level=level,
            log_type=log_type,
            logger_name=self.name,
            message=msg,
            context=full_context,
            correlation_id=correlation_id,
            exchange=exchange,
            symbol=symbol
        )
        self._dispatch(record)

    def _dispatch(self, record: LogRecord) -> None:
        queued = False
        for backend in self.backends:
            if not backend.enabled or not backend.should_handle(record):
                continue
            if backend.supports_sync:
                try:
                    backend.write_sync(record)
                except Exception as e:
                    backend._handle_error(e)
            else:
                self._pending.append((backend, record))
                queued = True

        if queued:
            self._schedule_drain()

    def _schedule_drain(self) -> None:
        if self._drain_task is not None and not self._drain_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: records wait for an explicit flush()
            return
        self._drain_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending:
            backend, record = self._pending.popleft()
            try:
                await backend.write(record)
            except Exception as e:
                backend._handle_error(e)

    # Standard logging methods
    def debug(self, msg: str, **context) -> None:
        self._log(LogLevel.DEBUG, msg, **context)

    def info(self, msg: str, **context) -> None:
        self._log(LogLevel.INFO, msg, **context)

    def warning(self, msg: str, **context) -> None:
        self._log(LogLevel.WARNING, msg, **context)

    def error(self, msg: str, **context) -> None:
        self._log(LogLevel.ERROR, msg, **context)

    def critical(self, msg: str, **context) -> None:
        self._log(LogLevel.CRITICAL, msg, **context)

    def metric(self, name: str, value: float, **tags) -> None:
        full_tags = {**self.context, **tags}
        record = LogRecord(
            timestamp=time.time(),
            level=LogLevel.INFO,
            log_type=LogType.METRIC,
            logger_name=self.name,
            message="",
            metric_name=name,
            metric_value=float(value),
            metric_tags=full_tags,
            correlation_id=full_tags.pop('correlation_id', None),
            exchange=full_tags.pop('exchange', None),
            symbol=full_tags.pop('symbol', None)
        )
        self._dispatch(record)

    def latency(self, operation: str, duration_ms: float, **tags) -> None:
        self.metric(f"{operation}_latency_ms", duration_ms, **tags)

    def counter(self, name: str, value: int = 1, **tags) -> None:
        self.metric(f"{name}_count", float(value), **tags)

    def audit(self, event: str, **context) -> None:
        self._log(LogLevel.INFO, event, LogType.AUDIT, **context)

    def set_context(self, **context) -> None:
        self.context.update(context)

    async def flush(self) -> None:
        """Drain queued records and flush every backend."""
        if self._drain_task is not None and not self._drain_task.done():
            await self._drain_task
        await self._drain()

        for backend in self.backends:
            try:
                await backend.flush()
            except Exception as e:
                print(f"Backend {backend.name} flush error: {e}")


class LoggingTimer:
    """Context manager for timing operations with automatic logging."""

    def __init__(self, logger: LoggerInterface, operation: str, **tags):
        self.logger = logger
        self.operation = operation
        self.tags = tags
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.end_time = time.perf_counter()
            duration_ms = (self.end_time - self.start_time) * 1000
            self.logger.latency(self.operation, duration_ms, **self.tags)

        if exc_type is not None:
            self.logger.error(f"{self.operation} failed",
                              error_type=exc_type.__name__,
                              **self.tags)

    @property
    def elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        end_time = self.end_time or time.perf_counter()
        return (end_time - self.start_time) * 1000
