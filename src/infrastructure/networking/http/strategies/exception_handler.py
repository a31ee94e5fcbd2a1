"""
Exception Handler Strategy Interface

Converts exchange-specific error responses to unified exception types.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ....exceptions.exchange import ExchangeRestError


class ExceptionHandlerStrategy(ABC):
    """Strategy for handling exchange-specific API errors."""

    @abstractmethod
    def handle_error(self, status_code: int, response_text: str) -> ExchangeRestError:
        """
        Map an HTTP error response to an exception.

        Args:
            status_code: HTTP status code
            response_text: Raw response text from the API
        """

    def check_payload(self, payload: Any) -> Optional[ExchangeRestError]:
        """
        Inspect a decoded HTTP 200 body for an application-level error.

        Exchanges that report failures inside a successful HTTP response
        override this. Returns None when the payload is a success.
        """
        return None
