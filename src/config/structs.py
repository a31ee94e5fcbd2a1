from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urlparse

from msgspec import Struct, field as struct_field

from infrastructure.exceptions.system import ConfigurationError


MIN_AUTH_EXPIRY_WINDOW_MS = 60_000
MAX_AUTH_EXPIRY_WINDOW_MS = 600_000


@dataclass(frozen=True)
class Credential:
    """
    API key pair.

    The secret is normalised to bytes and kept out of repr so that a
    credential can be passed to a logger or an exception message without
    leaking it.
    """
    key_id: str
    secret: Union[bytes, str] = field(repr=False)

    def __post_init__(self):
        if isinstance(self.secret, str):
            object.__setattr__(self, 'secret', self.secret.encode('utf-8'))

    @property
    def has_private_api(self) -> bool:
        return bool(self.key_id) and bool(self.secret)

    def get_preview(self) -> str:
        """Get safe preview of credentials for logging."""
        if not self.key_id:
            return "Not configured"
        if len(self.key_id) > 8:
            return f"{self.key_id[:4]}...{self.key_id[-4:]}"
        return "***"

    def validate(self) -> None:
        if not self.key_id:
            raise ValueError("key_id must not be empty")
        if not self.secret:
            raise ValueError("secret must not be empty")


class WebSocketConfig(Struct, frozen=True):
    """
    Streaming connection settings.

    Attributes:
        connect_timeout: Seconds to wait for the socket to open
        ping_interval: Seconds between application-level pings
        ping_timeout: Seconds to wait for a pong before the connection is dead
        close_timeout: Seconds to wait for a clean close
        reconnect_delay: Base reconnect delay in seconds
        reconnect_backoff: Multiplier applied per failed attempt
        max_reconnect_delay: Cap on the reconnect delay in seconds
        reconnect_jitter: Fraction of the delay added/removed at random
        stability_threshold: Seconds a connection must stay up before backoff resets
        max_reconnect_attempts: Consecutive failed attempts before giving up (None = forever)
        auth_expiry_window_ms: How far in the future auth handshakes expire
        max_message_size: Largest inbound frame accepted
    """
    connect_timeout: float = 10.0
    ping_interval: float = 20.0
    ping_timeout: float = 10.0
    close_timeout: float = 5.0
    reconnect_delay: float = 1.0
    reconnect_backoff: float = 2.0
    max_reconnect_delay: float = 60.0
    reconnect_jitter: float = 0.1
    stability_threshold: float = 30.0
    max_reconnect_attempts: Optional[int] = None
    auth_expiry_window_ms: int = 60_000
    max_message_size: int = 1048576

    def validate(self) -> None:
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.ping_interval <= 0:
            raise ValueError("ping_interval must be positive")
        if self.ping_timeout <= 0:
            raise ValueError("ping_timeout must be positive")
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay cannot be negative")
        if self.reconnect_backoff < 1.0:
            raise ValueError("reconnect_backoff must be >= 1.0")
        if self.max_reconnect_delay < self.reconnect_delay:
            raise ValueError("max_reconnect_delay must be >= reconnect_delay")
        if not 0.0 <= self.reconnect_jitter <= 1.0:
            raise ValueError("reconnect_jitter must be between 0 and 1")
        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts cannot be negative")
        if not MIN_AUTH_EXPIRY_WINDOW_MS <= self.auth_expiry_window_ms <= MAX_AUTH_EXPIRY_WINDOW_MS:
            raise ValueError(
                f"auth_expiry_window_ms must be between {MIN_AUTH_EXPIRY_WINDOW_MS} "
                f"and {MAX_AUTH_EXPIRY_WINDOW_MS}"
            )


class RestConfig(Struct, frozen=True):
    """REST transport settings."""
    timeout: float = 10.0
    recv_window_ms: int = 5000
    max_concurrent: int = 10
    max_attempts: int = 1
    retry_delay: float = 0.5
    user_agent: str = "bybit-session-core/1.0"

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.recv_window_ms <= 0:
            raise ValueError("recv_window_ms must be positive")
        if self.max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")


class OrderGatewayConfig(Struct, frozen=True):
    """
    Order tracking settings.

    Attributes:
        category: Bybit product category (spot, linear, inverse)
        retention_seconds: How long terminal orders stay queryable
        retry_delay: Delay before the single retry of a failed submission
        id_prefix: Optional prefix for generated client order ids
    """
    category: str = "spot"
    retention_seconds: float = 300.0
    retry_delay: float = 0.5
    id_prefix: str = ""

    def validate(self) -> None:
        if self.category not in ("spot", "linear", "inverse"):
            raise ValueError(f"Unsupported category: {self.category}")
        if self.retention_seconds < 0:
            raise ValueError("retention_seconds cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        # orderLinkId is limited to 36 characters, a uuid4 hex takes 32
        if len(self.id_prefix) > 4:
            raise ValueError("id_prefix must be at most 4 characters")


class ExchangeConfig(Struct, frozen=True):
    """
    Complete exchange configuration including credentials and settings.

    Attributes:
        name: Exchange name
        credentials: API credentials
        testnet: Whether the endpoints point at the test environment
        base_url: REST API base URL
        private_ws_url: Authenticated user-data stream
        public_ws_url: Public market-data stream
        trade_ws_url: Order entry stream
    """
    name: str
    credentials: Credential
    base_url: str
    private_ws_url: str
    public_ws_url: str
    trade_ws_url: str
    testnet: bool = False
    websocket: WebSocketConfig = struct_field(default_factory=WebSocketConfig)
    rest: RestConfig = struct_field(default_factory=RestConfig)
    orders: OrderGatewayConfig = struct_field(default_factory=OrderGatewayConfig)

    def validate(self) -> None:
        """Validate the whole tree, raising ConfigurationError on the first problem."""
        if not self.name:
            raise ConfigurationError("Exchange name must not be empty", "name")

        try:
            self.credentials.validate()
        except ValueError as e:
            raise ConfigurationError(f"Invalid credentials: {e}", "credentials") from e

        self._validate_url(self.base_url, ("https", "http"), "base_url")
        for setting in ("private_ws_url", "public_ws_url", "trade_ws_url"):
            self._validate_url(getattr(self, setting), ("wss", "ws"), setting)

        for setting in ("websocket", "rest", "orders"):
            try:
                getattr(self, setting).validate()
            except ValueError as e:
                raise ConfigurationError(f"Invalid {setting} configuration: {e}", setting) from e

    @staticmethod
    def _validate_url(url: str, schemes: tuple, setting_name: str) -> None:
        parsed = urlparse(url or "")
        if parsed.scheme not in schemes or not parsed.netloc:
            raise ConfigurationError(
                f"{setting_name} must be a {'/'.join(schemes)} URL, got: {url!r}",
                setting_name
            )

    def get_summary(self) -> str:
        return (
            f"{self.name} ({'testnet' if self.testnet else 'mainnet'})\n"
            f"  REST: {self.base_url}\n"
            f"  Private WS: {self.private_ws_url}\n"
            f"  Credentials: {self.credentials.get_preview()}"
        )
