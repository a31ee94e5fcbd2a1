"""
Logging Backends

- ConsoleBackend: stdlib logging bridge
- FileBackend: async file logging with rotation
- MetricsBackend: in-memory metric aggregation
"""

from .console import ConsoleBackend
from .file import FileBackend
from .metrics import MetricsBackend

__all__ = [
    'ConsoleBackend',
    'FileBackend',
    'MetricsBackend',
]
