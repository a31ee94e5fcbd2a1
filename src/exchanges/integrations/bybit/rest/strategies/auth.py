from typing import Dict, Optional

from config.structs import Credential
from infrastructure.logging import LoggerInterface, get_exchange_logger
from infrastructure.networking.http import AuthStrategy, AuthenticationData, HTTPMethod
from exchanges.integrations.bybit.signer import build_v5_signature

PUBLIC_PREFIXES = ('/v5/market/',)


class BybitAuthStrategy(AuthStrategy):
    """
    Bybit v5 header signing.

    X-BAPI-SIGN = HMAC-SHA256(timestamp + api_key + recv_window + payload)
    where payload is the query string for GET and the JSON body for POST.
    """

    def __init__(self, credential: Credential, recv_window_ms: int = 5000,
                 logger: Optional[LoggerInterface] = None):
        self.credential = credential
        self.recv_window_ms = recv_window_ms
        self.logger = logger or get_exchange_logger('bybit', 'rest.auth')

        self.logger.debug("Bybit auth strategy initialized",
                          api_key=credential.get_preview(),
                          recv_window=recv_window_ms)

    def sign_request(self, method: HTTPMethod, endpoint: str, payload: str,
                     timestamp: int) -> AuthenticationData:
        signature = build_v5_signature(
            self.credential.secret, timestamp, self.credential.key_id, self.recv_window_ms, payload
        )
        headers: Dict[str, str] = {
            'X-BAPI-API-KEY': self.credential.key_id,
            'X-BAPI-TIMESTAMP': str(timestamp),
            'X-BAPI-RECV-WINDOW': str(self.recv_window_ms),
            'X-BAPI-SIGN': signature,
        }
        return AuthenticationData(headers=headers)

    def requires_auth(self, endpoint: str) -> bool:
        return not endpoint.startswith(PUBLIC_PREFIXES)
