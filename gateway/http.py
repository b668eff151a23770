from typing import Dict, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .params import Config

QueryParams = Sequence[Tuple[str, str]]


class HTTPClient:
    """Upstream HTTP client with connection pooling and optional retry."""

    __slots__ = ("timeout", "session")

    def __init__(self):
        self.timeout: Tuple[int, int] = (
            Config.CG_HTTP_CONNECT_TIMEOUT_LIMIT,
            Config.CG_HTTP_READ_TIMEOUT_LIMIT,
        )
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()

        retry_strategy = Retry(
            total=Config.CG_HTTP_MAX_RETRY_COUNT,
            backoff_factor=Config.CG_HTTP_RETRY_BACKOFF,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=Config.CG_HTTP_MAX_POOL_CONNECTIONS_COUNT,
            pool_maxsize=Config.CG_HTTP_POOL_MAX_SIZE,
            pool_block=False,  # Don't block when pool is full
        )

        session.mount("http://", adapter)
        session.mount("https://", adapter)

        # Keep-alive headers
        session.headers.update({"Connection": "keep-alive", "Keep-Alive": "300"})

        return session

    def get(
        self, url: str, headers: Optional[Dict[str, str]] = None
    ) -> requests.Response:
        return self.session.get(url, timeout=self.timeout, headers=headers)

    def close(self) -> None:
        self.session.close()


def build_upstream_url(
    base_url: str,
    path: str,
    params: QueryParams,
    credential: str,
    credential_param: Optional[str] = None,
) -> str:
    """Join ``path`` onto ``base_url`` and inject ``credential``.

    Any client supplied value of the credential parameter is dropped, so the
    upstream always sees exactly one, pool-issued value.
    """
    credential_param = credential_param or Config.CG_CREDENTIAL_PARAM
    query = [(k, v) for k, v in params if k != credential_param]
    query.append((credential_param, credential))

    url = base_url.rstrip("/") + "/" + path.lstrip("/")
    prepared = requests.Request("GET", url, params=query).prepare()
    return prepared.url  # type: ignore[return-value]
