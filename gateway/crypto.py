import threading
from typing import Optional

from cryptography.fernet import Fernet

from .params import Config


class SecretBox:
    """Symmetric sealing of credential secrets held in memory."""

    __slots__ = ()
    _fernet_cipher: Optional[Fernet] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls):
        raise TypeError(f"{cls.__name__} may not be instantiated")

    @classmethod
    def enabled(cls) -> bool:
        return bool(Config.CG_CREDENTIAL_FERNET_KEY)

    @classmethod
    def _get_fernet(cls) -> Fernet:
        if cls._fernet_cipher is None:
            with cls._lock:
                if cls._fernet_cipher is None:
                    if not Config.CG_CREDENTIAL_FERNET_KEY:
                        raise ValueError("CG_CREDENTIAL_FERNET_KEY not configured")
                    cls._fernet_cipher = Fernet(
                        Config.CG_CREDENTIAL_FERNET_KEY.encode("utf-8")
                    )
        return cls._fernet_cipher

    @classmethod
    def seal(cls, data: bytes | str) -> bytes:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls._get_fernet().encrypt(data)

    @classmethod
    def unseal(cls, token: bytes | str) -> str:
        if isinstance(token, str):
            token = token.encode("utf-8")
        return cls._get_fernet().decrypt(token).decode("utf-8")

    @classmethod
    def unload(cls) -> None:
        cls._fernet_cipher = None
