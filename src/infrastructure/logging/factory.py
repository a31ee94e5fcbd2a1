"""
Logging Factory

Creates and caches logger instances from struct-based configuration.
Backends are built once per configuration and shared by every logger,
so the metrics backend aggregates across components.
"""

import os
from typing import Dict, List, Optional

from .interfaces import LoggerInterface, LogBackend
from .logger import StructuredLogger
from .backends.console import ConsoleBackend
from .backends.file import FileBackend
from .backends.metrics import MetricsBackend
from .structs import LoggingConfig


class LoggerFactory:
    """Logging factory - trust config, fail fast."""

    _cached_loggers: Dict[str, StructuredLogger] = {}
    _default_config: Optional[LoggingConfig] = None
    _backends: Optional[List[LogBackend]] = None

    @classmethod
    def create_logger(cls, name: str, config: Optional[LoggingConfig] = None) -> LoggerInterface:
        if name in cls._cached_loggers:
            return cls._cached_loggers[name]

        config = config or cls.get_default_config()
        logger = StructuredLogger(
            name=name,
            backends=cls._get_backends(config),
            default_context=config.default_context
        )
        cls._cached_loggers[name] = logger
        return logger

    @classmethod
    def _get_backends(cls, config: LoggingConfig) -> List[LogBackend]:
        if cls._backends is None:
            backends: List[LogBackend] = []
            if config.console and config.console.enabled:
                backends.append(ConsoleBackend(config.console))
            if config.file and config.file.enabled:
                backends.append(FileBackend(config.file))
            if config.metrics and config.metrics.enabled:
                backends.append(MetricsBackend(config.metrics))
            cls._backends = backends
        return cls._backends

    @classmethod
    def get_default_config(cls) -> LoggingConfig:
        if cls._default_config is None:
            environment = os.getenv('ENVIRONMENT', 'dev').lower()
            if environment == 'prod':
                cls._default_config = LoggingConfig.default_production()
            else:
                cls._default_config = LoggingConfig.default_development()
        return cls._default_config

    @classmethod
    def configure(cls, config: LoggingConfig) -> None:
        """Replace the default configuration and drop cached loggers."""
        config.validate()
        cls.clear_cache()
        cls._default_config = config

    @classmethod
    def get_metrics(cls) -> Optional[MetricsBackend]:
        for backend in cls._get_backends(cls.get_default_config()):
            if isinstance(backend, MetricsBackend):
                return backend
        return None

    @classmethod
    def clear_cache(cls) -> None:
        cls._cached_loggers.clear()
        cls._default_config = None
        cls._backends = None


def get_logger(name: str) -> LoggerInterface:
    """Get logger instance."""
    return LoggerFactory.create_logger(name)


def get_exchange_logger(exchange: str, component: Optional[str] = None) -> LoggerInterface:
    """Get exchange logger with optional component."""
    name = f"{exchange}.{component}" if component else exchange
    logger = get_logger(name)
    logger.set_context(exchange=exchange)
    return logger


def configure_logging(config: LoggingConfig) -> None:
    LoggerFactory.configure(config)
