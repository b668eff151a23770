from typing import NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urlencode

import requests

from .cache import ResponseCache
from .collapse import CollapsingFetcher
from .counter import ProxyRequestCounter
from .errors import RateLimitExceeded, UpstreamError
from .http import HTTPClient, build_upstream_url
from .logger import LoggerManager
from .params import Config
from .rotator import CredentialPool

RATE_LIMIT_MESSAGE = b"Rate limit exceeded for all API keys"
UPSTREAM_ERROR_MESSAGE = b"External API Error"
TEXT_PLAIN = "text/plain; charset=utf-8"


class ClientRequest(NamedTuple):
    path: str
    params: Sequence[Tuple[str, str]] = ()


class ClientResponse(NamedTuple):
    status_code: int
    body: bytes
    content_type: Optional[str] = None
    cache_status: Optional[str] = None  # "HIT" | "MISS"; None for gateway errors
    collapsed: bool = False


class UpstreamResponse(NamedTuple):
    status_code: int
    content_type: Optional[str]
    body: bytes


def make_cache_key(
    path: str,
    params: Sequence[Tuple[str, str]],
    credential_param: Optional[str] = None,
) -> str:
    """Canonical request identity shared by the cache and the collapser.

    Parameters are sorted by name (repeated names keep their order) and the
    credential parameter is left out, since it never reaches the upstream
    as sent by the client.
    """
    credential_param = credential_param or Config.CG_CREDENTIAL_PARAM
    path = "/" + path.lstrip("/")
    kept = sorted(
        ((k, v) for k, v in params if k != credential_param), key=lambda kv: kv[0]
    )
    if not kept:
        return path
    return f"{path}?{urlencode(kept)}"


class ProxyOrchestrator:
    """Read path: cache, then a collapsed upstream fetch on a pooled key."""

    def __init__(
        self,
        pool: CredentialPool,
        cache: ResponseCache,
        http_client: HTTPClient,
        fetcher: Optional[CollapsingFetcher] = None,
        counter: Optional[ProxyRequestCounter] = None,
        base_url: Optional[str] = None,
        credential_param: Optional[str] = None,
    ):
        self.pool = pool
        self.cache = cache
        self.http_client = http_client
        self.fetcher = fetcher or CollapsingFetcher()
        self.counter = counter or ProxyRequestCounter()
        self.base_url = base_url or Config.CG_UPSTREAM_BASE_URL
        self.credential_param = credential_param or Config.CG_CREDENTIAL_PARAM

    def handle(self, request: ClientRequest) -> ClientResponse:
        key = make_cache_key(request.path, request.params, self.credential_param)
        self.counter.increment("requests")

        entry = self.cache.get(key)
        if entry is not None:
            self.counter.increment("cache_hits")
            LoggerManager.debug(f"Cache hit - key={key}")
            return ClientResponse(
                status_code=entry.status_code,
                body=entry.body,
                content_type=entry.content_type,
                cache_status="HIT",
            )

        self.counter.increment("cache_misses")
        try:
            result, shared = self.fetcher.do(key, lambda: self._fetch(key, request))
        except RateLimitExceeded:
            self.counter.increment("rate_limited")
            return ClientResponse(429, RATE_LIMIT_MESSAGE, TEXT_PLAIN)
        except UpstreamError as e:
            self.counter.increment("upstream_errors")
            LoggerManager.error(f"Upstream fetch failed - key={key}, error={e}")
            return ClientResponse(502, UPSTREAM_ERROR_MESSAGE, TEXT_PLAIN)
        except Exception as e:
            self.counter.increment("upstream_errors")
            LoggerManager.error(
                f"Unexpected error during fetch - key={key}, error_type={type(e).__name__}"
            )
            return ClientResponse(502, UPSTREAM_ERROR_MESSAGE, TEXT_PLAIN)

        if shared:
            self.counter.increment("collapsed")
        return ClientResponse(
            status_code=result.status_code,
            body=result.body,
            content_type=result.content_type,
            cache_status="MISS",
            collapsed=shared,
        )

    def _fetch(self, key: str, request: ClientRequest) -> UpstreamResponse:
        credential = self.pool.acquire()
        if credential is None:
            LoggerManager.warn(f"Rate limit exceeded for all API keys - key={key}")
            raise RateLimitExceeded()

        url = build_upstream_url(
            self.base_url,
            request.path,
            request.params,
            credential.value,
            self.credential_param,
        )

        LoggerManager.info(f"Fetching from API - key={key}")
        self.counter.increment("upstream_calls")
        try:
            with self.http_client.get(url) as response:
                result = UpstreamResponse(
                    status_code=response.status_code,
                    content_type=response.headers.get("Content-Type"),
                    body=response.content,
                )
        except requests.RequestException as e:
            # The exception text carries the URL, credential included.
            raise UpstreamError(f"{type(e).__name__} calling upstream", cause=e) from e

        if result.status_code == 200:
            self.cache.put(
                key,
                result.body,
                status_code=result.status_code,
                content_type=result.content_type,
            )
        else:
            LoggerManager.info(
                f"Upstream returned {result.status_code}; not cached - key={key}"
            )
        return result
