"""
Configuration package.

Usage:
    from config import ConfigManager

    config = ConfigManager().get_exchange_config('bybit')
"""

from .structs import (
    Credential,
    WebSocketConfig,
    RestConfig,
    OrderGatewayConfig,
    ExchangeConfig
)
from .config_manager import ConfigManager, substitute_env_vars, guess_file_paths

__all__ = [
    'Credential',
    'WebSocketConfig',
    'RestConfig',
    'OrderGatewayConfig',
    'ExchangeConfig',
    'ConfigManager',
    'substitute_env_vars',
    'guess_file_paths',
]
