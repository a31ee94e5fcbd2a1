"""
Configuration Management

Loads settings from a .env file (python-dotenv) and an optional config.yaml
with environment variable substitution, then builds validated
ExchangeConfig structs.

Usage:
    from config import ConfigManager

    manager = ConfigManager()
    bybit = manager.get_exchange_config('bybit')
    print(bybit.get_summary())

Every ConfigManager is independent, so two accounts can be configured in
one process by passing different environments or config files.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .exchanges.exchange_config import ExchangeConfigBuilder
from .logging.logging_config import LoggingConfigManager
from .structs import ExchangeConfig
from infrastructure.exceptions.system import ConfigurationError
from infrastructure.logging import LoggingConfig, get_logger


ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')


def guess_file_paths(file_name: str) -> List[Path]:
    """Returns the locations searched for a config file, in priority order."""
    return [
        Path(__file__).parent.parent.parent / file_name,  # Project root
        Path(__file__).parent.parent / file_name,         # src directory
        Path.cwd() / file_name,                           # Current working directory
        Path.home() / file_name,                          # User home directory (fallback)
    ]


def substitute_env_vars(content: str, environ: Mapping[str, str]) -> str:
    """
    Substitute environment variables in configuration content.

    Supports:
    - ${VAR_NAME} - replaced with the variable, or empty if unset
    - ${VAR_NAME:default} - replaced with the variable, or default if unset
    """
    def replace_var(match):
        var_expr = match.group(1)
        if ':' in var_expr:
            var_name, default_value = var_expr.split(':', 1)
            return environ.get(var_name.strip(), default_value)
        return environ.get(var_expr.strip(), '')

    return ENV_VAR_PATTERN.sub(replace_var, content)


class ConfigManager:
    """
    Configuration for one or more exchange accounts.

    Args:
        config_path: Explicit config.yaml path; searched for when omitted
        environ: Environment mapping; os.environ when omitted
        load_env_file: Whether to load a .env file into os.environ first
    """

    def __init__(self, config_path: Optional[Path] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 load_env_file: bool = True):
        self._logger = get_logger('config.manager')

        if load_env_file and environ is None:
            self._load_env_file()

        self.environ = environ if environ is not None else os.environ
        self.config_data = self._load_yaml_config(config_path)
        self._builder = ExchangeConfigBuilder(self.environ)
        self._exchange_configs: Dict[str, ExchangeConfig] = {}

    @property
    def environment(self) -> str:
        return str(self.config_data.get('environment')
                   or self.environ.get('ENVIRONMENT', 'dev')).lower()

    def _load_env_file(self) -> None:
        for env_path in guess_file_paths('.env'):
            if env_path.exists():
                load_dotenv(dotenv_path=env_path, override=False)
                self._logger.info("Loaded environment variables", path=str(env_path))
                return
        self._logger.debug("No .env file found - using system environment variables only")

    def _load_yaml_config(self, config_path: Optional[Path]) -> Dict[str, Any]:
        if config_path is not None:
            candidates = [Path(config_path)]
            if not candidates[0].exists():
                raise ConfigurationError(f"Config file not found: {config_path}", 'config_path')
        else:
            candidates = [p for p in guess_file_paths('config.yaml') if p.exists()]

        if not candidates:
            self._logger.debug("No config.yaml found - using environment and defaults")
            return {}

        path = candidates[0]
        raw_content = path.read_text(encoding='utf-8')
        try:
            config_data = yaml.safe_load(substitute_env_vars(raw_content, self.environ))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}", 'config_path') from e

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping", 'config_path')

        self._logger.info("Configuration loaded", path=str(path))
        return config_data

    def get_exchange_config(self, exchange_name: str = 'bybit') -> ExchangeConfig:
        """Build (once) and return the validated config for one exchange account."""
        key = exchange_name.lower()
        if key not in self._exchange_configs:
            exchanges = self.config_data.get('exchanges') or {}
            if not isinstance(exchanges, dict):
                raise ConfigurationError("'exchanges' section must be a mapping", 'exchanges')
            self._exchange_configs[key] = self._builder.build(exchanges.get(key), name=key)
        return self._exchange_configs[key]

    def get_configured_exchanges(self) -> List[str]:
        exchanges = self.config_data.get('exchanges') or {}
        return [name.lower() for name in exchanges] or ['bybit']

    def get_logging_config(self) -> LoggingConfig:
        return LoggingConfigManager(self.config_data, self.environment).get_logging_config()
