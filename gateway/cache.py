import math
import threading
import time
from typing import Callable, NamedTuple, Optional

from cachetools import TTLCache

from .logger import LoggerManager


class CacheEntry(NamedTuple):
    body: bytes
    expires_at: float
    status_code: int = 200
    content_type: Optional[str] = None


class ResponseCache:
    """Thread-safe, time-expiring store for successful upstream responses.

    Entries are checked against their own ``expires_at`` on every read, so a
    stale entry is never served even if the sweeper has not run yet. The
    sweeper only reclaims memory.
    """

    def __init__(
        self,
        ttl: float,
        sweep_interval: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        # No size bound; expiry is the only eviction.
        self._store: TTLCache = TTLCache(maxsize=math.inf, ttl=ttl, timer=clock)
        self._lock = threading.Lock()

        self._sweeper: Optional[threading.Thread] = None
        self._stop_flag = threading.Event()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                self._store.pop(key, None)
                return None
            return entry

    def put(
        self,
        key: str,
        body: bytes,
        status_code: int = 200,
        content_type: Optional[str] = None,
    ) -> CacheEntry:
        with self._lock:
            entry = CacheEntry(
                body=body,
                expires_at=self._clock() + self._ttl,
                status_code=status_code,
                content_type=content_type,
            )
            self._store[key] = entry
            return entry

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            expired = self._store.expire()
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def start(self) -> None:
        """Start background sweep thread."""
        if self._sweeper and self._sweeper.is_alive():
            return

        self._stop_flag.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            daemon=True,
            name="CacheSweeper",
        )
        self._sweeper.start()
        LoggerManager.info(
            f"Cache sweeper started (ttl={self._ttl}s, interval={self._sweep_interval}s)"
        )

    def stop(self) -> None:
        self._stop_flag.set()

        if self._sweeper and self._sweeper.is_alive():
            self._sweeper.join(timeout=5)

        LoggerManager.info("Cache sweeper stopped")

    def _sweep_loop(self) -> None:
        while not self._stop_flag.wait(self._sweep_interval):
            try:
                removed = self.sweep()
                if removed:
                    LoggerManager.debug(f"Cache sweep removed {removed} entries")
            except Exception as e:
                LoggerManager.error(f"Cache sweep error: {e}")
