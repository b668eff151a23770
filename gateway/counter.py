import threading
from typing import Dict

COUNTER_NAMES = (
    "requests",
    "cache_hits",
    "cache_misses",
    "collapsed",
    "upstream_calls",
    "rate_limited",
    "upstream_errors",
)


class ProxyRequestCounter:
    """Thread-safe request counters."""

    __slots__ = ("_values", "_lock")

    def __init__(self):
        self._values: Dict[str, int] = {name: 0 for name in COUNTER_NAMES}
        self._lock = threading.Lock()

    def increment(self, name: str, value: int = 1) -> int:
        with self._lock:
            self._values[name] = self._values.get(name, 0) + value
            return self._values[name]

    def get(self, name: str) -> int:
        with self._lock:
            return self._values.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._values)
