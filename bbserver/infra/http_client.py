"""
HTTP transport infrastructure for bbserver.

Provides a thin abstraction over requests for the Bitbucket Server REST API:
- Bearer token or basic authentication
- Retries connection failures, 429 and 5xx with exponential backoff
- Raises TransportError for every other non-2xx response
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from ..config import DriverConfig
from ..exit_codes import TransportError

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class HttpResponse:
    """Body and status of a successful HTTP response."""
    url: str
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            TransportError: If the body is not valid JSON
        """
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON returned by {self.url}: {e}",
                url=self.url,
                status_code=self.status_code,
            ) from e


class HttpClient:
    """
    Synchronous HTTP client with retry/backoff.

    Example:
        client = HttpClient(token="...")
        data = client.fetch("https://git.example.com/rest/api/1.0/projects").json()
    """

    def __init__(
        self,
        token: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize HttpClient.

        Args:
            token: Personal access token sent as a bearer token
            username: Username for basic authentication (ignored when token is set)
            password: Password for basic authentication
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for retryable failures
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay between retries
            session: Preconfigured requests session
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'bbserver',
        })
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'
        elif username:
            self.session.auth = (username, password or '')

    @classmethod
    def from_config(cls, config: DriverConfig) -> 'HttpClient':
        """Create a client from the http settings of a DriverConfig."""
        return cls(
            token=config.http_token or None,
            username=config.http_username or None,
            password=config.http_password or None,
            timeout=config.http_timeout,
            max_retries=config.http_max_retries,
            base_delay=config.http_base_delay,
            max_delay=config.http_max_delay,
        )

    def _backoff(self, attempt: int, retry_after: Optional[str] = None) -> float:
        if retry_after and retry_after.isdigit():
            return min(float(retry_after), self.max_delay)
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def fetch(self, url: str) -> HttpResponse:
        """
        GET a URL.

        Args:
            url: Absolute URL

        Returns:
            HttpResponse for a 2xx answer

        Raises:
            TransportError: On connection failure or non-2xx status
        """
        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                response = self.session.get(url, timeout=self.timeout)
            except requests.RequestException as e:
                if last_attempt:
                    raise TransportError(f"Request to {url} failed: {e}", url=url) from e
                delay = self._backoff(attempt)
                logger.info(f"Request to {url} failed ({e}), retrying in {delay}s")
                time.sleep(delay)
                continue

            logger.debug(f"GET {url} -> {response.status_code}")

            if 200 <= response.status_code < 300:
                return HttpResponse(
                    url=url,
                    status_code=response.status_code,
                    body=response.content,
                    headers=dict(response.headers),
                )

            if response.status_code in RETRY_STATUS_CODES and not last_attempt:
                delay = self._backoff(attempt, response.headers.get('Retry-After'))
                logger.info(
                    f"HTTP {response.status_code} from {url}, retrying in {delay}s "
                    f"(attempt {attempt + 1})"
                )
                time.sleep(delay)
                continue

            raise TransportError(
                f"The \"{url}\" file could not be downloaded (HTTP {response.status_code})",
                url=url,
                status_code=response.status_code,
            )

        # max_retries >= 1, the loop always returns or raises
        raise TransportError(f"Request to {url} failed", url=url)
