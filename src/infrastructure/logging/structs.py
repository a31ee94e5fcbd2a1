"""
Logging Configuration Structures

Structured configuration for the logging system using msgspec.Struct.
"""

from typing import Optional, Dict, Any
from msgspec import Struct

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class BackendConfig(Struct, frozen=True):
    """
    Base configuration for all logging backends.

    Attributes:
        enabled: Whether this backend is active
        min_level: Minimum log level to process (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    enabled: bool = True
    min_level: str = "INFO"

    def validate(self) -> None:
        if self.min_level.upper() not in _VALID_LEVELS:
            raise ValueError(f"Invalid log level: {self.min_level}")


class ConsoleBackendConfig(BackendConfig):
    """
    Console backend configuration.

    Attributes:
        include_context: Render context as key=value pairs
        max_message_length: Maximum message length before truncation
    """
    include_context: bool = True
    max_message_length: int = 1000


class FileBackendConfig(BackendConfig):
    """
    File backend configuration.

    Attributes:
        path: Log file path
        format: Output format (text or json)
        max_size_mb: Maximum file size in MB before rotation
        backup_count: Number of rotated files to keep
    """
    path: str = "logs/session.log"
    format: str = "text"
    max_size_mb: int = 50
    backup_count: int = 5

    def validate(self) -> None:
        super().validate()
        if self.format not in {"text", "json"}:
            raise ValueError(f"Invalid format: {self.format}")
        if self.max_size_mb <= 0:
            raise ValueError("max_size_mb must be positive")
        if self.backup_count < 0:
            raise ValueError("backup_count cannot be negative")


class MetricsBackendConfig(BackendConfig):
    """In-memory metric aggregation."""
    min_level: str = "DEBUG"


class LoggingConfig(Struct, frozen=True):
    """
    Complete logging configuration.

    Attributes:
        environment: Environment name (dev, prod, test)
        console: Console backend configuration
        file: File backend configuration
        metrics: In-memory metrics backend configuration
        default_context: Context attached to every record
    """
    environment: str = "dev"
    console: Optional[ConsoleBackendConfig] = None
    file: Optional[FileBackendConfig] = None
    metrics: Optional[MetricsBackendConfig] = None
    default_context: Optional[Dict[str, Any]] = None

    def validate(self) -> None:
        if self.environment not in {"dev", "prod", "test"}:
            raise ValueError(f"Invalid environment: {self.environment}")
        for backend in (self.console, self.file, self.metrics):
            if backend is not None:
                backend.validate()

    @classmethod
    def default_development(cls) -> 'LoggingConfig':
        return cls(
            environment="dev",
            console=ConsoleBackendConfig(min_level="DEBUG"),
            metrics=MetricsBackendConfig(),
        )

    @classmethod
    def default_production(cls) -> 'LoggingConfig':
        return cls(
            environment="prod",
            console=ConsoleBackendConfig(min_level="INFO", include_context=True),
            file=FileBackendConfig(min_level="INFO", format="json"),
            metrics=MetricsBackendConfig(),
        )
