from .exchange import (
    ExchangeError,
    InvalidCredentialError,
    InvalidOrderSpecError,
    NotConnectedError,
    NotAuthenticatedError,
    AuthFailedError,
    OrderNotFoundError,
    ExchangeRestError,
    NetworkError,
    RateLimitError,
    ExchangeRejectedError,
)
from .system import ConfigurationError

__all__ = [
    'ExchangeError',
    'InvalidCredentialError',
    'InvalidOrderSpecError',
    'NotConnectedError',
    'NotAuthenticatedError',
    'AuthFailedError',
    'OrderNotFoundError',
    'ExchangeRestError',
    'NetworkError',
    'RateLimitError',
    'ExchangeRejectedError',
    'ConfigurationError',
]
