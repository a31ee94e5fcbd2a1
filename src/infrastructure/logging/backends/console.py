"""
Console Backend

Bridges records into Python's standard logging so existing handlers,
formatters and pytest's caplog keep working.
"""

import logging
from typing import Dict

from ..interfaces import LogBackend, LogRecord, LogLevel, LogType
from ..structs import ConsoleBackendConfig

_PY_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL
}


class ConsoleBackend(LogBackend):
    """Console logging backend using the stdlib logging tree."""

    supports_sync = True

    def __init__(self, config: ConsoleBackendConfig, name: str = "console"):
        super().__init__(name)
        self.config = config
        self.min_level = LogLevel[config.min_level.upper()]
        self.include_context = config.include_context
        self.max_message_length = config.max_message_length
        self.enabled = config.enabled

        self._py_loggers: Dict[str, logging.Logger] = {}
        if self.enabled:
            self._ensure_python_logging_configured()

    def should_handle(self, record: LogRecord) -> bool:
        if record.level < self.min_level:
            return False
        return record.log_type in (LogType.TEXT, LogType.AUDIT)

    async def write(self, record: LogRecord) -> None:
        self.write_sync(record)

    def write_sync(self, record: LogRecord) -> None:
        py_logger = self._py_loggers.get(record.logger_name)
        if py_logger is None:
            py_logger = self._py_loggers[record.logger_name] = logging.getLogger(record.logger_name)
        py_logger.log(_PY_LEVELS.get(record.level, logging.INFO), self._format_message(record))

    async def flush(self) -> None:
        pass

    def _ensure_python_logging_configured(self) -> None:
        root_logger = logging.getLogger()
        if not root_logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)-8s %(name)-24s %(message)s'
            ))
            root_logger.addHandler(console_handler)
            root_logger.setLevel(_PY_LEVELS[self.min_level])

    def _format_message(self, record: LogRecord) -> str:
        message = record.message
        if len(message) > self.max_message_length:
            message = message[:self.max_message_length] + "..."

        if self.include_context and record.context:
            context_parts = []
            for key, value in record.context.items():
                value_str = str(value)
                if len(value_str) > 100:
                    value_str = value_str[:100] + "..."
                context_parts.append(f"{key}={value_str}")
            message += f" | {', '.join(context_parts)}"

        correlation_parts = []
        if record.correlation_id:
            correlation_parts.append(f"correlation_id={record.correlation_id}")
        if record.exchange:
            correlation_parts.append(f"exchange={record.exchange}")
        if record.symbol:
            correlation_parts.append(f"symbol={record.symbol}")
        if correlation_parts:
            message += f" | {', '.join(correlation_parts)}"

        if record.log_type != LogType.TEXT:
            message = f"[{record.log_type.name}] {message}"

        return message
