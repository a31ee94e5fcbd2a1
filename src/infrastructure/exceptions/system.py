from typing import Optional

from .exchange import ExchangeError


class ConfigurationError(ExchangeError):
    """Configuration-specific exception for setup errors."""

    def __init__(self, message: str, setting_name: Optional[str] = None):
        self.setting_name = setting_name
        super().__init__(message)
