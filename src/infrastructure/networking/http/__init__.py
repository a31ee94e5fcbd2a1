from .structs import HTTPMethod
from .strategies import (
    RetryStrategy, AuthStrategy, ExceptionHandlerStrategy, RestStrategySet,
    RequestMetrics, AuthenticationData
)
from .rest_manager import RestManager
from .utils import canonical_query, canonical_body

__all__ = [
    "HTTPMethod",
    # Strategy interfaces
    "RetryStrategy", "AuthStrategy", "ExceptionHandlerStrategy",
    "RestStrategySet",
    # Data structures
    "RequestMetrics", "AuthenticationData",
    # Transport manager
    "RestManager",
    "canonical_query", "canonical_body",
]
