from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ConnectionState(Enum):
    """
    Streaming connection states.

    The transport moves through DISCONNECTED, CONNECTING, CONNECTED and
    CLOSING. AUTHENTICATING and AUTHENTICATED are layered on top by a
    private session.
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSING = "closing"


@dataclass
class TransportMetrics:
    """Counters for one transport instance."""
    connections: int = 0
    reconnects: int = 0
    failed_attempts: int = 0
    messages_received: int = 0
    decode_errors: int = 0
    heartbeat_timeouts: int = 0
    handler_errors: int = 0
    last_error: Optional[str] = None


def is_pong(message: Any) -> bool:
    """Bybit answers pings with either op=pong or ret_msg=pong."""
    if not isinstance(message, dict):
        return False
    return message.get('op') == 'pong' or message.get('ret_msg') == 'pong'
