from .exchange import BybitResponse, BybitOrderEvent, BybitExecutionEvent, BybitStreamMessage

__all__ = [
    "BybitResponse",
    "BybitOrderEvent",
    "BybitExecutionEvent",
    "BybitStreamMessage",
]
