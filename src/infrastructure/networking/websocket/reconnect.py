import random
from typing import Optional

from config.structs import WebSocketConfig


class ReconnectPolicy:
    """
    Exponential backoff with jitter.

    delay(attempt) = min(base * backoff ** attempt, cap), then spread by
    +/- jitter and capped again.
    """

    def __init__(self, config: WebSocketConfig, rng: Optional[random.Random] = None):
        self.base_delay = config.reconnect_delay
        self.backoff = config.reconnect_backoff
        self.max_delay = config.max_reconnect_delay
        self.jitter = config.reconnect_jitter
        self.stability_threshold = config.stability_threshold
        self.max_attempts = config.max_reconnect_attempts
        self._rng = rng or random.Random()

    def delay(self, attempt: int) -> float:
        # Clamp the exponent so huge attempt counts cannot overflow
        exponent = min(attempt, 64)
        delay = min(self.base_delay * (self.backoff ** exponent), self.max_delay)
        if self.jitter:
            delay *= 1.0 + self.jitter * self._rng.uniform(-1.0, 1.0)
        return max(0.0, min(delay, self.max_delay))

    def should_retry(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt <= self.max_attempts

    def is_stable(self, uptime: float) -> bool:
        return uptime >= self.stability_threshold
