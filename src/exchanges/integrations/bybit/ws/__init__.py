from .structs import AuthHandshake, AuthResult, SubscriptionHealth
from .private_session import BybitPrivateSession
from .subscription import SubscriptionManager

__all__ = [
    "AuthHandshake",
    "AuthResult",
    "SubscriptionHealth",
    "BybitPrivateSession",
    "SubscriptionManager",
]
