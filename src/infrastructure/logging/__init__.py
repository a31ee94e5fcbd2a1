"""
Structured Logging System

Usage:
    from infrastructure.logging import get_logger

    logger = get_logger('bybit.ws.session')
    logger.info("Session authenticated", conn_id="abc123")

    # Exchange logger with context
    logger = get_exchange_logger('bybit', 'orders')
    logger.audit("order_filled", correlation_id=client_order_id)

    # Metrics logging
    logger.metric("ws_unmatched_messages", 1, topic="tickers.BTCUSDT")
"""

from .interfaces import (
    LogLevel,
    LogType,
    LogRecord,
    LogBackend,
    LoggerInterface
)

from .logger import StructuredLogger, LoggingTimer

from .factory import (
    LoggerFactory,
    get_logger,
    get_exchange_logger,
    configure_logging
)

from .structs import (
    LoggingConfig,
    BackendConfig,
    ConsoleBackendConfig,
    FileBackendConfig,
    MetricsBackendConfig
)

from .backends import ConsoleBackend, FileBackend, MetricsBackend

__all__ = [
    'LogLevel',
    'LogType',
    'LogRecord',
    'LogBackend',
    'LoggerInterface',

    'StructuredLogger',
    'LoggingTimer',

    'LoggerFactory',
    'get_logger',
    'get_exchange_logger',
    'configure_logging',

    'LoggingConfig',
    'BackendConfig',
    'ConsoleBackendConfig',
    'FileBackendConfig',
    'MetricsBackendConfig',

    'ConsoleBackend',
    'FileBackend',
    'MetricsBackend',
]
