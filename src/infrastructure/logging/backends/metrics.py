"""
In-Memory Metrics Backend

Aggregates metric records so operational counters (dropped stream
messages, reconnects, REST latencies) can be read back in-process.
"""

from collections import defaultdict
from typing import Dict, Optional

from ..interfaces import LogBackend, LogRecord, LogType
from ..structs import MetricsBackendConfig


class MetricsBackend(LogBackend):
    """Keeps running totals and last values per metric name."""

    supports_sync = True

    def __init__(self, config: Optional[MetricsBackendConfig] = None, name: str = "metrics"):
        super().__init__(name)
        self.config = config or MetricsBackendConfig()
        self.enabled = self.config.enabled
        self._totals: Dict[str, float] = defaultdict(float)
        self._last: Dict[str, float] = {}
        self._samples: Dict[str, int] = defaultdict(int)

    def should_handle(self, record: LogRecord) -> bool:
        return record.log_type == LogType.METRIC and record.metric_name is not None

    async def write(self, record: LogRecord) -> None:
        self.write_sync(record)

    def write_sync(self, record: LogRecord) -> None:
        name = record.metric_name
        value = record.metric_value or 0.0
        self._totals[name] += value
        self._last[name] = value
        self._samples[name] += 1

    async def flush(self) -> None:
        pass

    def total(self, name: str) -> float:
        return self._totals.get(name, 0.0)

    def last(self, name: str) -> Optional[float]:
        return self._last.get(name)

    def samples(self, name: str) -> int:
        return self._samples.get(name, 0)

    def snapshot(self) -> Dict[str, float]:
        return dict(self._totals)

    def reset(self) -> None:
        self._totals.clear()
        self._last.clear()
        self._samples.clear()
