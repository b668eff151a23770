import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuration with type hints and validation."""

    # Upstream
    CG_UPSTREAM_BASE_URL: str = os.getenv("CG_UPSTREAM_BASE_URL", "http://api.511.org/")
    CG_OPERATOR_ID: str = os.getenv("CG_OPERATOR_ID", "CT")
    CG_CREDENTIAL_PARAM: str = os.getenv("CG_CREDENTIAL_PARAM", "api_key")

    # Credentials
    CG_CREDENTIAL_ENV_PREFIX: str = os.getenv(
        "CG_CREDENTIAL_ENV_PREFIX", "FIVEONEONE_API_KEY_"
    )
    CG_CREDENTIAL_RATE: float = float(os.getenv("CG_CREDENTIAL_RATE", "1.0"))
    CG_CREDENTIAL_BURST: int = int(os.getenv("CG_CREDENTIAL_BURST", "5"))
    CG_CREDENTIAL_FERNET_KEY: Optional[str] = os.getenv("CG_CREDENTIAL_FERNET_KEY")

    # Response Cache
    CG_CACHE_TTL: float = float(os.getenv("CG_CACHE_TTL", "120"))
    CG_CACHE_SWEEP_INTERVAL: float = float(os.getenv("CG_CACHE_SWEEP_INTERVAL", "600"))

    # Gate
    CG_GATEWAY_SECRET: Optional[str] = os.getenv("CG_GATEWAY_SECRET")
    CG_GATEWAY_SECRET_HEADER: str = os.getenv(
        "CG_GATEWAY_SECRET_HEADER", "X-Gateway-Secret"
    )

    # HTTP
    CG_HTTP_MAX_POOL_CONNECTIONS_COUNT: int = int(
        os.getenv("CG_HTTP_MAX_POOL_CONNECTIONS_COUNT", "10")
    )
    CG_HTTP_CONNECT_TIMEOUT_LIMIT: int = int(
        os.getenv("CG_HTTP_CONNECT_TIMEOUT_LIMIT", "5")
    )
    CG_HTTP_READ_TIMEOUT_LIMIT: int = int(os.getenv("CG_HTTP_READ_TIMEOUT_LIMIT", "30"))
    CG_HTTP_MAX_RETRY_COUNT: int = int(os.getenv("CG_HTTP_MAX_RETRY_COUNT", "0"))
    CG_HTTP_RETRY_BACKOFF: float = float(os.getenv("CG_HTTP_RETRY_BACKOFF", "0.3"))
    CG_HTTP_POOL_MAX_SIZE: int = int(os.getenv("CG_HTTP_POOL_MAX_SIZE", "50"))
    CG_GZIP_MIN_SIZE: int = int(os.getenv("CG_GZIP_MIN_SIZE", "0"))

    # Reference data
    CG_TIMETABLE_PRELOAD: int = int(os.getenv("CG_TIMETABLE_PRELOAD", "1"))
    CG_TIMETABLE_LOAD_DELAY: float = float(os.getenv("CG_TIMETABLE_LOAD_DELAY", "2"))

    # Server
    CG_HOST: str = os.getenv("CG_HOST", "0.0.0.0")
    CG_PORT: int = int(os.getenv("CG_PORT", "8080"))

    # Logging
    CG_LOG_DIR: str = os.getenv("CG_LOG_DIR", ".")
    CG_LOG_FILE: str = os.getenv("CG_LOG_FILE", "gateway.log")
    CG_LOG_LEVEL: str = os.getenv("CG_LOG_LEVEL", "INFO")


def load_credentials_from_env(prefix: Optional[str] = None) -> List[str]:
    """Read ``<prefix>1``, ``<prefix>2``, ... until the first unset one."""
    prefix = prefix or Config.CG_CREDENTIAL_ENV_PREFIX
    values: List[str] = []
    index = 1
    while True:
        value = os.getenv(f"{prefix}{index}")
        if not value:
            break
        values.append(value)
        index += 1
    return values
