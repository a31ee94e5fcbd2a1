from typing import FrozenSet, Optional

from msgspec import Struct


class AuthHandshake(Struct, frozen=True):
    """Signed auth request for the private stream. Never carries the secret."""
    api_key: str
    expires_at_ms: int
    signature: str
    req_id: str

    def to_message(self) -> dict:
        return {
            "req_id": self.req_id,
            "op": "auth",
            "args": [self.api_key, self.expires_at_ms, self.signature],
        }


class AuthResult(Struct, frozen=True):
    authenticated: bool
    error: Optional[str] = None
    conn_id: Optional[str] = None


class SubscriptionHealth(Struct, frozen=True):
    """Point-in-time view of subscription state."""
    desired: FrozenSet[str]
    rejected: FrozenSet[str]
    pending_requests: int
    dropped_messages: int

    @property
    def healthy(self) -> bool:
        return not self.rejected
