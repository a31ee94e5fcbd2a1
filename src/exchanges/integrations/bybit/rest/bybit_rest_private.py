"""
Bybit Private REST API Implementation

v5 private endpoints used for trading and account inspection:
- order placement and cancellation
- open orders, order history and executions
- wallet balance, positions and margin mode
- API key information (UID, permissions)

Every method returns the decoded `result` object of the v5 envelope;
failures surface as NetworkError or ExchangeRejectedError from the
exception handler strategy.
"""

from typing import Any, Dict, Optional

import msgspec

from config.structs import ExchangeConfig
from infrastructure.exceptions.exchange import ExchangeRestError
from infrastructure.logging import LoggerInterface, get_exchange_logger
from infrastructure.networking.http import RestManager, RestStrategySet
from exchanges.integrations.bybit.rest.strategies import BybitAuthStrategy, BybitExceptionHandlerStrategy
from exchanges.integrations.bybit.structs.exchange import BybitResponse


def create_rest_manager(config: ExchangeConfig, logger: Optional[LoggerInterface] = None) -> RestManager:
    """RestManager wired with Bybit v5 signing and error mapping."""
    strategy_set = RestStrategySet(
        auth_strategy=BybitAuthStrategy(config.credentials, config.rest.recv_window_ms),
        exception_handler_strategy=BybitExceptionHandlerStrategy(),
    )
    return RestManager(config.base_url, strategy_set, config.rest,
                       logger=logger or get_exchange_logger('bybit', 'rest.manager'))


def _compact(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


class BybitPrivateRest:
    """
    Bybit private REST API client.

    Args:
        config: Exchange configuration with credentials and base URL
        logger: Injected logger
        rest_manager: Pre-built transport, mainly for tests
    """

    def __init__(self, config: ExchangeConfig, logger: Optional[LoggerInterface] = None,
                 rest_manager: Optional[RestManager] = None):
        self.config = config
        self.logger = logger or get_exchange_logger('bybit', 'rest.private')
        self._rest = rest_manager or create_rest_manager(config)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self._rest.close()

    @staticmethod
    def _result(response: Any) -> Any:
        try:
            return msgspec.convert(response, BybitResponse).result
        except msgspec.ValidationError as e:
            raise ExchangeRestError(200, f"Unexpected response: {e}") from e

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Any:
        return self._result(await self._rest.get(endpoint, params=_compact(params)))

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        return self._result(await self._rest.post(endpoint, json_data=_compact(body)))

    # Trading

    async def place_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create an order.

        Args:
            order: v5 order body (category, symbol, side, orderType, qty,
                price, timeInForce, orderLinkId)

        Returns:
            {'orderId': ..., 'orderLinkId': ...}
        """
        result = await self._post('/v5/order/create', order)
        self.logger.debug("Order created", symbol=order.get('symbol'),
                          order_link_id=order.get('orderLinkId'),
                          order_id=(result or {}).get('orderId'))
        return result

    async def cancel_order(self, symbol: str, order_id: Optional[str] = None,
                           order_link_id: Optional[str] = None,
                           category: Optional[str] = None) -> Dict[str, Any]:
        if not order_id and not order_link_id:
            raise ValueError("order_id or order_link_id is required")
        return await self._post('/v5/order/cancel', {
            'category': category or self.config.orders.category,
            'symbol': symbol,
            'orderId': order_id,
            'orderLinkId': order_link_id,
        })

    async def get_open_orders(self, symbol: Optional[str] = None, category: Optional[str] = None,
                              settle_coin: Optional[str] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        return await self._get('/v5/order/realtime', {
            'category': category or self.config.orders.category,
            'symbol': symbol,
            'settleCoin': settle_coin,
            'limit': limit,
        })

    async def get_order_history(self, symbol: Optional[str] = None, category: Optional[str] = None,
                                limit: Optional[int] = None) -> Dict[str, Any]:
        return await self._get('/v5/order/history', {
            'category': category or self.config.orders.category,
            'symbol': symbol,
            'limit': limit,
        })

    async def get_executions(self, symbol: Optional[str] = None, category: Optional[str] = None,
                             limit: Optional[int] = None) -> Dict[str, Any]:
        return await self._get('/v5/execution/list', {
            'category': category or self.config.orders.category,
            'symbol': symbol,
            'limit': limit,
        })

    # Account

    async def get_wallet_balance(self, account_type: str = 'UNIFIED',
                                 coin: Optional[str] = None) -> Dict[str, Any]:
        return await self._get('/v5/account/wallet-balance', {
            'accountType': account_type,
            'coin': coin,
        })

    async def get_positions(self, symbol: Optional[str] = None, category: str = 'linear',
                            settle_coin: Optional[str] = None) -> Dict[str, Any]:
        if symbol is None and settle_coin is None:
            settle_coin = 'USDT'
        return await self._get('/v5/position/list', {
            'category': category,
            'symbol': symbol,
            'settleCoin': settle_coin,
        })

    async def set_margin_mode(self, margin_mode: str) -> Dict[str, Any]:
        """Switch the unified account margin mode (REGULAR_MARGIN, PORTFOLIO_MARGIN, ISOLATED_MARGIN)."""
        result = await self._post('/v5/account/set-margin-mode', {'setMarginMode': margin_mode})
        self.logger.info("Margin mode set", margin_mode=margin_mode)
        return result

    async def get_api_key_info(self) -> Dict[str, Any]:
        """Key permissions, expiry and the account UID."""
        return await self._get('/v5/user/query-api', {})
