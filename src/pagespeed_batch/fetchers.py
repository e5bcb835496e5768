"""Fetchers perform the HTTP GET for a prepared request URL.

A fetcher only moves bytes: it returns the status code and body of the
response, and raises TransportError when no response was received. Deciding
what the status and body mean is the client's job.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from .core.config import ClientConfig
from .errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class FetchResponse:
    """Status code and raw body of a response."""

    status_code: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Fetcher(ABC):
    """
    Abstract base class for fetchers.

    The runner calls:
    1. fetch() once per job, possibly from many tasks at once
    2. close() once when the owning client is closed
    """

    @abstractmethod
    async def fetch(self, url: str) -> FetchResponse:
        """
        GET ``url``.

        Returns:
            FetchResponse with the status code and body

        Raises:
            TransportError: If no response was received
        """
        pass

    async def close(self) -> None:
        """
        Release resources held by the fetcher.

        Default: no-op
        """
        pass


class HttpxFetcher(Fetcher):
    """Fetcher backed by a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Client configuration (timeout, user agent, redirects)
            client: Existing client to use; it is not closed by close()
        """
        self.config = config or ClientConfig()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.http_timeout,
                headers={"User-Agent": self.config.user_agent},
                follow_redirects=self.config.follow_redirects,
            )
        return self._client

    async def fetch(self, url: str) -> FetchResponse:
        try:
            response = await self._get_client().get(url)
        except httpx.TimeoutException as e:
            raise TransportError(f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"request failed: {type(e).__name__}: {e}") from e

        logger.debug(f"GET {response.request.url.host} -> {response.status_code}")
        return FetchResponse(status_code=response.status_code, body=response.content)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
