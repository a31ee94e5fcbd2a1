from typing import Any, Optional

import msgspec

from infrastructure.exceptions.exchange import (
    ExchangeRestError, ExchangeRejectedError, NetworkError, RateLimitError
)
from infrastructure.logging import LoggerInterface, get_exchange_logger
from infrastructure.networking.http import ExceptionHandlerStrategy
from exchanges.integrations.bybit.structs.exchange import BybitResponse

# retCodes that describe a transient condition on Bybit's side
RATE_LIMIT_CODES = frozenset({10006, 10018})
TRANSIENT_CODES = frozenset({10000, 10016})


class BybitExceptionHandlerStrategy(ExceptionHandlerStrategy):
    """
    Maps Bybit failures to the unified taxonomy.

    - HTTP 429 and retCode 10006/10018: RateLimitError
    - HTTP 5xx and server-side retCodes: NetworkError
    - any other HTTP 4xx or non-zero retCode: ExchangeRejectedError(retMsg)
    """

    def __init__(self, logger: Optional[LoggerInterface] = None):
        self.logger = logger or get_exchange_logger('bybit', 'rest.exception_handler')

    def handle_error(self, status_code: int, response_text: str) -> ExchangeRestError:
        ret_code, ret_msg = self._parse(response_text)
        message = ret_msg or f"HTTP {status_code}: {response_text[:200]}"

        if status_code == 429 or ret_code in RATE_LIMIT_CODES:
            return RateLimitError(status_code, message, ret_code)
        if status_code >= 500 or ret_code in TRANSIENT_CODES:
            return NetworkError(status_code, message, ret_code)
        return ExchangeRejectedError(status_code, message, ret_code)

    def check_payload(self, payload: Any) -> Optional[ExchangeRestError]:
        try:
            response = msgspec.convert(payload, BybitResponse)
        except msgspec.ValidationError:
            return None

        if response.retCode == 0:
            return None

        self.logger.debug("Bybit API error", ret_code=response.retCode, ret_msg=response.retMsg)
        if response.retCode in RATE_LIMIT_CODES:
            return RateLimitError(200, response.retMsg, response.retCode)
        if response.retCode in TRANSIENT_CODES:
            return NetworkError(200, response.retMsg, response.retCode)
        return ExchangeRejectedError(200, response.retMsg, response.retCode)

    @staticmethod
    def _parse(response_text: str):
        try:
            data = msgspec.json.decode(response_text)
        except msgspec.DecodeError:
            return None, ""
        if not isinstance(data, dict):
            return None, ""
        ret_code = data.get('retCode')
        return (ret_code if isinstance(ret_code, int) else None), str(data.get('retMsg') or "")
