import threading
import time
from typing import Callable, Iterable, List, Optional

from .crypto import SecretBox
from .logger import LoggerManager

Clock = Callable[[], float]


class TokenBucket:
    """Lazily refilled token bucket.

    Not thread-safe on its own; the owning pool serialises access.
    """

    __slots__ = ("rate", "burst", "_tokens", "_last", "_clock")

    def __init__(self, rate: float, burst: int, clock: Clock = time.monotonic):
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens: float = float(burst)
        self._last: float = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last
        if elapsed > 0:
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last = now

    def allow(self) -> bool:
        """Take one token if available. Never blocks."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    def tokens(self) -> float:
        self._refill()
        return self._tokens


class Credential:
    """An upstream API key and its independent limiter."""

    def __init__(self, value: str, limiter: TokenBucket):
        self._value = value
        self.limiter = limiter

    @property
    def value(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(value='***')"


class EncryptedCredential(Credential):
    """Credential whose secret stays Fernet-sealed until it is used."""

    def __init__(self, value: str, limiter: TokenBucket):
        super().__init__("", limiter)
        self._sealed: bytes = SecretBox.seal(value)

    @property
    def value(self) -> str:
        return SecretBox.unseal(self._sealed)


class CredentialPool:
    """Round-robin pool of rate limited upstream credentials."""

    def __init__(self, credentials: Iterable[Credential]):
        self._credentials: List[Credential] = list(credentials)
        self._lock = threading.Lock()
        self._cursor = 0

    @classmethod
    def from_values(
        cls,
        values: Iterable[str],
        rate: float,
        burst: int,
        clock: Clock = time.monotonic,
    ) -> "CredentialPool":
        credential_cls = EncryptedCredential if SecretBox.enabled() else Credential
        pool = cls(
            credential_cls(value, TokenBucket(rate, burst, clock)) for value in values
        )
        LoggerManager.info(
            f"Credential pool ready - credentials={len(pool)}, rate={rate}/s, "
            f"burst={burst}, sealed={credential_cls is EncryptedCredential}"
        )
        return pool

    def __len__(self) -> int:
        return len(self._credentials)

    def acquire(self) -> Optional[Credential]:
        """Return the next credential with capacity, or None if all are spent.

        Scanning starts just past the credential handed out last.
        """
        with self._lock:
            n = len(self._credentials)
            for i in range(n):
                idx = (self._cursor + i) % n
                credential = self._credentials[idx]
                if credential.limiter.allow():
                    self._cursor = (idx + 1) % n
                    return credential
        return None

    def get_status(self) -> dict:
        """Get current status for monitoring."""
        with self._lock:
            return {
                "credentials": len(self._credentials),
                "available_tokens": [
                    round(c.limiter.tokens(), 2) for c in self._credentials
                ],
            }
