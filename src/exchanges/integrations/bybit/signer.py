"""
Bybit request signing.

All signatures are lowercase hex HMAC-SHA256. The functions here are pure:
no clock reads, no I/O, no state.
"""

import hashlib
import hmac
from typing import Any, Mapping, Union

from infrastructure.exceptions.exchange import InvalidCredentialError

SecretType = Union[bytes, str]

AUTH_VERB_PATH = "GET/realtime"


def _secret_bytes(secret: SecretType) -> bytes:
    if isinstance(secret, str):
        secret = secret.encode('utf-8')
    if not isinstance(secret, (bytes, bytearray)):
        raise InvalidCredentialError(f"Secret must be str or bytes, got {type(secret).__name__}")
    if not secret:
        raise InvalidCredentialError("Secret must not be empty")
    return bytes(secret)


def sign(secret: SecretType, canonical_string: str) -> str:
    """HMAC-SHA256 of canonical_string, hex-encoded."""
    return hmac.new(_secret_bytes(secret), canonical_string.encode('utf-8'), hashlib.sha256).hexdigest()


def canonicalize(params: Mapping[str, Any]) -> str:
    """Sort keys ascending and join as key=value pairs with '&'."""
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def build_auth_signature(secret: SecretType, api_key: str, expires_at_ms: int) -> str:
    """
    Signature for the private stream handshake.

    The signed string is fixed by the protocol: "GET/realtime" + expiry.
    api_key is not part of the signed string; it travels alongside it in
    the auth args.
    """
    if not api_key:
        raise InvalidCredentialError("API key must not be empty")
    return sign(secret, f"{AUTH_VERB_PATH}{int(expires_at_ms)}")


def build_rest_signature(secret: SecretType, params: Mapping[str, Any]) -> str:
    """Legacy query-signed scheme: HMAC over the canonicalized parameters."""
    return sign(secret, canonicalize(params))


def build_v5_signature(secret: SecretType, timestamp_ms: int, api_key: str,
                       recv_window_ms: int, payload: str) -> str:
    """v5 header scheme: HMAC over timestamp + api_key + recv_window + payload."""
    return sign(secret, f"{int(timestamp_ms)}{api_key}{int(recv_window_ms)}{payload}")


def auth_expiry_ms(now_ms: int, window_ms: int) -> int:
    return int(now_ms) + int(window_ms)
