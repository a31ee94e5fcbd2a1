"""
REST Transport Strategy Module

Strategy interfaces and data structures for REST transport.
"""

from .structs import AuthenticationData, RequestMetrics
from .retry import RetryStrategy
from .auth import AuthStrategy
from .exception_handler import ExceptionHandlerStrategy
from .strategy_set import RestStrategySet

__all__ = [
    'AuthenticationData',
    'RequestMetrics',
    'RetryStrategy',
    'AuthStrategy',
    'ExceptionHandlerStrategy',
    'RestStrategySet',
]
