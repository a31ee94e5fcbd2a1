"""
Retry Strategy

Decides whether a failed request attempt is repeated and how long to wait.
"""

import asyncio

from ....exceptions.exchange import NetworkError, RateLimitError


class RetryStrategy:
    """
    Exponential backoff for transient failures.

    Only NetworkError (and its RateLimitError subclass) is retried; anything
    the exchange rejected is final.
    """

    def __init__(self, base_delay: float = 0.5, backoff: float = 2.0, max_delay: float = 5.0):
        self.base_delay = base_delay
        self.backoff = backoff
        self.max_delay = max_delay

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return isinstance(error, NetworkError)

    def calculate_delay(self, attempt: int, error: Exception) -> float:
        if isinstance(error, RateLimitError) and error.retry_after:
            return min(float(error.retry_after), self.max_delay)
        return min(self.base_delay * (self.backoff ** (attempt - 1)), self.max_delay)

    async def wait(self, attempt: int, error: Exception) -> None:
        await asyncio.sleep(self.calculate_delay(attempt, error))
