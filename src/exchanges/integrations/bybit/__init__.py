"""
Bybit v5 integration: request signing, private REST client, authenticated
private stream session with subscription management, and order lifecycle
tracking.
"""

from .order_gateway import OrderGateway
from .rest import BybitPrivateRest, create_rest_manager
from .signer import build_auth_signature, build_rest_signature, build_v5_signature, canonicalize, sign
from .ws import BybitPrivateSession, SubscriptionManager

__all__ = [
    'OrderGateway',
    'BybitPrivateRest',
    'create_rest_manager',
    'BybitPrivateSession',
    'SubscriptionManager',
    'sign',
    'canonicalize',
    'build_auth_signature',
    'build_rest_signature',
    'build_v5_signature',
]
