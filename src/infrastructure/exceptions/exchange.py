from typing import Optional


class ExchangeError(Exception):
    """Base exception for every error raised by the session core."""
    pass


# Local validation errors (raised synchronously, never reach the network)
class InvalidCredentialError(ExchangeError):
    """Empty or malformed API key / secret."""
    pass


class InvalidOrderSpecError(ExchangeError):
    """Order request failed local validation."""
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        self.message = message
        super().__init__(message)


# Out-of-state operations
class NotConnectedError(ExchangeError):
    """Operation requires a connected transport."""
    pass


class NotAuthenticatedError(ExchangeError):
    """Operation requires an authenticated session."""
    pass


class AuthFailedError(ExchangeError):
    """Server explicitly rejected the authentication handshake."""
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Authentication failed: {reason}")


class OrderNotFoundError(ExchangeError):
    """Client order id unknown, evicted, or already terminal."""
    def __init__(self, client_order_id: str, message: Optional[str] = None) -> None:
        self.client_order_id = client_order_id
        super().__init__(message or f"Order not found: {client_order_id}")


class ExchangeRestError(ExchangeError):
    """Base exception for all exchange REST API errors."""
    def __init__(self, code: int, message: str, api_code: Optional[int] = None) -> None:
        self.api_code = api_code
        self.message = message
        self.status_code = code
        super().__init__(f"HTTP {code}: {message}")


# Transient errors (retryable)
class NetworkError(ExchangeRestError):
    """Connection failures, timeouts and server-side errors that may be temporary."""
    pass


class RateLimitError(NetworkError):
    """Rate limit exceeded (HTTP 429 or retCode 10006)."""
    def __init__(self, code: int, message: str, api_code: Optional[int] = None,
                 retry_after: Optional[float] = None) -> None:
        super().__init__(code, message, api_code)
        self.retry_after = retry_after

    def __str__(self):
        return f"RateLimitError: {self.status_code} - {self.message} - {self.api_code} - {self.retry_after}"


# Terminal errors (never retried)
class ExchangeRejectedError(ExchangeRestError):
    """Exchange refused the request; `message` holds the reported reason."""

    @property
    def reason(self) -> str:
        return self.message
