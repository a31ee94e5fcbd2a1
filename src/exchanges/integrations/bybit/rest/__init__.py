from .bybit_rest_private import BybitPrivateRest, create_rest_manager
from .strategies import BybitAuthStrategy, BybitExceptionHandlerStrategy

__all__ = [
    'BybitPrivateRest',
    'create_rest_manager',
    'BybitAuthStrategy',
    'BybitExceptionHandlerStrategy',
]
