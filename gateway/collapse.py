import threading
from typing import Any, Callable, Dict, Optional, Tuple

from .logger import LoggerManager


class _Call:
    __slots__ = ("done", "result", "error", "waiters")

    def __init__(self):
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.waiters = 0


class CollapsingFetcher:
    """Runs at most one ``work`` per key at a time.

    Callers that arrive while a key is being fetched block until that fetch
    finishes and then get its result (or its exception). Nothing is kept
    once the fetch returns, so the next call for the key starts over.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[str, _Call] = {}

    def do(self, key: str, work: Callable[[], Any]) -> Tuple[Any, bool]:
        """Return ``(result, shared)``; ``shared`` is False only for the caller
        that actually ran ``work``. Exceptions from ``work`` are raised to
        every caller of that round."""
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.waiters += 1
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            LoggerManager.debug(f"Fetch in progress; waiting - key={key}")
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result, True

        try:
            call.result = work()
        except BaseException as e:
            call.error = e
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()
            if call.waiters:
                LoggerManager.debug(
                    f"Fetch completed; released {call.waiters} waiters - key={key}"
                )

        if call.error is not None:
            raise call.error
        return call.result, False

    def in_flight(self) -> int:
        with self._lock:
            return len(self._calls)
