from .auth import SecretGate
from .cache import CacheEntry, ResponseCache
from .collapse import CollapsingFetcher
from .counter import ProxyRequestCounter
from .crypto import SecretBox
from .errors import GatewayError, RateLimitExceeded, ReferenceDataError, UpstreamError
from .handler import ClientRequest, ClientResponse, ProxyOrchestrator, make_cache_key
from .http import HTTPClient, build_upstream_url
from .logger import LoggerManager
from .params import Config, load_credentials_from_env
from .rotator import Credential, CredentialPool, EncryptedCredential, TokenBucket
from .timetable import Timetable, TimetableCollection, TimetableStore, preload_timetables

__all__ = [
    "CacheEntry",
    "ClientRequest",
    "ClientResponse",
    "CollapsingFetcher",
    "Config",
    "Credential",
    "CredentialPool",
    "EncryptedCredential",
    "GatewayError",
    "HTTPClient",
    "LoggerManager",
    "ProxyOrchestrator",
    "ProxyRequestCounter",
    "RateLimitExceeded",
    "ReferenceDataError",
    "ResponseCache",
    "SecretBox",
    "SecretGate",
    "Timetable",
    "TimetableCollection",
    "TimetableStore",
    "TokenBucket",
    "UpstreamError",
    "build_upstream_url",
    "load_credentials_from_env",
    "make_cache_key",
    "preload_timetables",
]
