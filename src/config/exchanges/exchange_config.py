"""
Exchange configuration builder.

Turns a raw configuration mapping (YAML section plus environment) into a
validated ExchangeConfig:
- Endpoint selection for mainnet and testnet
- Credential lookup from the environment
- WebSocket, REST and order gateway settings with defaults
"""

import os
from typing import Any, Dict, Mapping, Optional

from ..structs import (
    Credential, ExchangeConfig, OrderGatewayConfig, RestConfig, WebSocketConfig
)
from infrastructure.exceptions.system import ConfigurationError
from infrastructure.logging import get_logger


BYBIT_ENDPOINTS: Dict[bool, Dict[str, str]] = {
    False: {
        'base_url': 'https://api.bybit.com',
        'private_ws_url': 'wss://stream.bybit.com/v5/private',
        'public_ws_url': 'wss://stream.bybit.com/v5/public/spot',
        'trade_ws_url': 'wss://stream.bybit.com/v5/trade',
    },
    True: {
        'base_url': 'https://api-testnet.bybit.com',
        'private_ws_url': 'wss://stream-testnet.bybit.com/v5/private',
        'public_ws_url': 'wss://stream-testnet.bybit.com/v5/public/spot',
        'trade_ws_url': 'wss://stream-testnet.bybit.com/v5/trade',
    },
}

API_KEY_VARS = ('BYBIT_API_KEY', 'API_KEY')
API_SECRET_VARS = ('BYBIT_API_SECRET', 'API_SECRET')


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _first_env(environ: Mapping[str, str], names: tuple) -> str:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return ''


class ExchangeConfigBuilder:
    """Builds ExchangeConfig structs from a config section and an environment."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = environ if environ is not None else os.environ
        self._logger = get_logger('config.exchange')

    def build(self, data: Optional[Dict[str, Any]] = None, name: str = 'bybit') -> ExchangeConfig:
        data = data or {}

        testnet = parse_bool(data.get('testnet', self.environ.get('TESTNET', False)))
        endpoints = dict(BYBIT_ENDPOINTS[testnet])
        for key in endpoints:
            if data.get(key):
                endpoints[key] = data[key]

        try:
            config = ExchangeConfig(
                name=name,
                credentials=self._extract_credentials(data),
                testnet=testnet,
                websocket=self._parse_section(WebSocketConfig, data.get('websocket'), 'websocket'),
                rest=self._parse_section(RestConfig, data.get('rest'), 'rest'),
                orders=self._parse_section(OrderGatewayConfig, data.get('orders'), 'orders'),
                **endpoints
            )
        except TypeError as e:
            raise ConfigurationError(f"Failed to configure exchange '{name}': {e}", name) from e

        config.validate()
        self._logger.debug("Configured exchange", exchange=name, testnet=testnet,
                           credentials=config.credentials.get_preview())
        return config

    def _extract_credentials(self, data: Dict[str, Any]) -> Credential:
        api_key = data.get('api_key') or _first_env(self.environ, API_KEY_VARS)
        secret = data.get('api_secret') or _first_env(self.environ, API_SECRET_VARS)

        if not api_key or not secret:
            raise ConfigurationError(
                f"Missing API credentials: set {' or '.join(API_KEY_VARS)} "
                f"and {' or '.join(API_SECRET_VARS)}",
                'credentials'
            )
        return Credential(key_id=api_key, secret=secret)

    @staticmethod
    def _parse_section(struct_type, part_config: Optional[Dict[str, Any]], setting_name: str):
        if not part_config:
            return struct_type()
        if not isinstance(part_config, dict):
            raise ConfigurationError(f"'{setting_name}' section must be a mapping", setting_name)

        known = set(struct_type.__struct_fields__)
        unknown = set(part_config) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown {setting_name} settings: {', '.join(sorted(unknown))}",
                setting_name
            )
        try:
            return struct_type(**part_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid {setting_name} section: {e}", setting_name) from e
