import logging
from typing import Optional, Dict

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.constants import HTTP_CONFIG, get_user_agent
from ..models.exceptions import NetworkException
from ..models.http import Request, Response

logger = logging.getLogger(__name__)


def create_session(
    max_retries: int = HTTP_CONFIG['max_retries'],
    user_agent: Optional[str] = None,
    proxy: Optional[str] = None,
) -> requests.Session:
    session = requests.Session()
    session.trust_env = True  # honor system/env proxies
    session.headers.update({
        "User-Agent": user_agent or get_user_agent(),
        "Accept-Language": "en-US,en;q=0.9",
    })

    retry = Retry(
        total=max_retries + 1,
        connect=max_retries + 1,
        read=max_retries + 1,
        backoff_factor=HTTP_CONFIG['retry_backoff_factor'],
        status_forcelist=tuple(HTTP_CONFIG['retry_status_codes']),
        allowed_methods=frozenset(HTTP_CONFIG['retry_methods']),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(
        max_retries=retry,
        pool_connections=HTTP_CONFIG['pool_connections'],
        pool_maxsize=HTTP_CONFIG['pool_maxsize'],
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    if proxy:
        session.proxies.update({"http": proxy, "https": proxy})

    return session


class NetworkFetcher:
    """Performs the agent's own network requests.

    Transport failures raise ``NetworkException``; HTTP error statuses are
    returned as responses so strategies can decide whether to store them.
    """

    def __init__(
        self,
        timeout: int = 15,
        max_retries: int = HTTP_CONFIG['max_retries'],
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or create_session(max_retries, user_agent, proxy)

    def fetch(self, request: Request) -> Response:
        headers: Dict[str, str] = dict(request.headers)
        try:
            resp = self.session.request(
                request.method,
                request.url,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout fetching {request.url}: {e}")
            raise NetworkException("Request timed out", url=request.url)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Network error fetching {request.url}: {e}")
            raise NetworkException(f"Request failed: {e}", url=request.url)

        response = Response.from_requests(resp)
        logger.debug(f"{request.method} {request.url} -> {response.status}")
        return response

    def close(self):
        if self.session:
            try:
                self.session.close()
            except Exception as e:
                logger.debug(f"Error closing session: {e}")
