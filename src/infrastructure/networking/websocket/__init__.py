from .structs import ConnectionState, TransportMetrics, is_pong
from .reconnect import ReconnectPolicy
from .transport import WebSocketTransport

__all__ = [
    "ConnectionState",
    "TransportMetrics",
    "is_pong",
    "ReconnectPolicy",
    "WebSocketTransport",
]
