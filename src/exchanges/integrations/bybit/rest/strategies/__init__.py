from .auth import BybitAuthStrategy
from .exception_handler import BybitExceptionHandlerStrategy

__all__ = ['BybitAuthStrategy', 'BybitExceptionHandlerStrategy']
