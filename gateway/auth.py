import hashlib
import hmac
from typing import Optional

from .logger import LoggerManager


class SecretGate:
    """Shared-secret check on an inbound request header."""

    __slots__ = ("header", "_digest")

    def __init__(self, secret: Optional[str], header: str):
        self.header = header
        self._digest: Optional[bytes] = (
            hashlib.sha256(secret.encode("utf-8")).digest() if secret else None
        )
        if self._digest is None:
            LoggerManager.warn("Gateway secret not set; requests are not authenticated")

    @property
    def enabled(self) -> bool:
        return self._digest is not None

    def allows(self, presented: Optional[str]) -> bool:
        if self._digest is None:
            return True
        if not presented:
            return False
        # Compare fixed-length digests in constant time
        digest = hashlib.sha256(presented.encode("utf-8")).digest()
        return hmac.compare_digest(digest, self._digest)
