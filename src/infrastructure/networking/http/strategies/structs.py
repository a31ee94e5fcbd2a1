"""
REST Transport Strategy Data Structures
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class AuthenticationData:
    """Headers (and extra query parameters) produced by an auth strategy."""
    headers: Dict[str, str]
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class RequestMetrics:
    """Request counters and rolling latency figures."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    retried_requests: int = 0
    rate_limit_hits: int = 0
    avg_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
