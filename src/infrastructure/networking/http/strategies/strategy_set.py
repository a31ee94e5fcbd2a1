"""
REST Strategy Set Container
"""

from typing import Optional

from .retry import RetryStrategy
from .auth import AuthStrategy
from .exception_handler import ExceptionHandlerStrategy


class RestStrategySet:
    """Container for the strategies a RestManager composes."""

    def __init__(
        self,
        auth_strategy: Optional[AuthStrategy] = None,
        exception_handler_strategy: Optional[ExceptionHandlerStrategy] = None,
        retry_strategy: Optional[RetryStrategy] = None,
    ):
        self.auth_strategy = auth_strategy
        self.exception_handler_strategy = exception_handler_strategy
        self.retry_strategy = retry_strategy or RetryStrategy()
