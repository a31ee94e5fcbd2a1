"""
Logging configuration management module.
"""

from .logging_config import LoggingConfigManager

__all__ = [
    'LoggingConfigManager'
]
