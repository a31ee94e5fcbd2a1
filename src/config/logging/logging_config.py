"""
Logging configuration manager.

Converts the `logging` section of config.yaml into a LoggingConfig struct.
"""

from typing import Any, Dict

import msgspec

from infrastructure.exceptions.system import ConfigurationError
from infrastructure.logging.structs import LoggingConfig


class LoggingConfigManager:
    """Simple logging configuration manager."""

    def __init__(self, config_data: Dict[str, Any], environment: str = 'dev'):
        self.config_data = config_data
        self.environment = environment

    def get_logging_config(self) -> LoggingConfig:
        section = self.config_data.get('logging')
        if not section:
            return self._get_default_config()

        section = dict(section)
        section.setdefault('environment', self.environment)
        try:
            config = msgspec.convert(section, LoggingConfig)
            config.validate()
        except (msgspec.ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid logging configuration: {e}", 'logging') from e
        return config

    def _get_default_config(self) -> LoggingConfig:
        if self.environment == 'prod':
            return LoggingConfig.default_production()
        return LoggingConfig.default_development()
