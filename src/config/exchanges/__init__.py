"""
Exchange configuration management module.

- Endpoint selection for mainnet and testnet
- Credential lookup from environment variables
- WebSocket, REST and order gateway settings
"""

from .exchange_config import BYBIT_ENDPOINTS, ExchangeConfigBuilder, parse_bool

__all__ = [
    'BYBIT_ENDPOINTS',
    'ExchangeConfigBuilder',
    'parse_bool'
]
