"""
Authentication Strategy Interface

Strategy for request authentication and signing.
"""

from abc import ABC, abstractmethod

from ..structs import HTTPMethod
from .structs import AuthenticationData


class AuthStrategy(ABC):
    """
    Strategy for request authentication and signing.

    The payload handed to sign_request is exactly what goes on the wire:
    the canonical query string for GET and the JSON body for POST.
    """

    @abstractmethod
    def sign_request(
        self,
        method: HTTPMethod,
        endpoint: str,
        payload: str,
        timestamp: int
    ) -> AuthenticationData:
        """
        Generate authentication data for request.

        Args:
            method: HTTP method
            endpoint: API endpoint
            payload: Canonical query string or JSON body
            timestamp: Request timestamp in milliseconds

        Returns:
            AuthenticationData with headers
        """

    def requires_auth(self, endpoint: str) -> bool:
        return True
