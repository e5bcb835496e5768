"""Single-call PageSpeed client."""

import logging
from typing import Generic, TypeVar

from .base import DecodedResponse
from .core.config import ClientConfig
from .core.protocols import FetcherLike, ResponseDecoder
from .credentials import Credential
from .errors import DecodeError, PageSpeedError, TransportError, error_from_response
from .fetchers import HttpxFetcher
from .lighthouse import LighthouseDecoder, LighthouseResult
from .request import LighthouseParam, create_lighthouse_url

logger = logging.getLogger(__name__)

TPayload = TypeVar("TPayload")


class PageSpeedClient(Generic[TPayload]):
    """
    Runs one PageSpeed analysis per call.

    The client draws a token from the credential, builds the request URL, calls
    the fetcher and decodes the body. A non-2xx status is decoded as a
    CompositeError; a 2xx status goes to the response decoder.

    Use as an async context manager (or call close()) to release the fetcher.
    """

    def __init__(
        self,
        fetcher: FetcherLike | None = None,
        decoder: ResponseDecoder[TPayload] | None = None,
        config: ClientConfig | None = None,
    ):
        self.config = config or ClientConfig()
        self.config.validate()
        self.fetcher = fetcher or HttpxFetcher(self.config)
        self.decoder = decoder or LighthouseDecoder()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False  # Don't suppress exceptions

    async def close(self) -> None:
        await self.fetcher.close()

    def build_url(
        self, url: str, credential: Credential | None, *params: LighthouseParam
    ) -> str:
        return create_lighthouse_url(url, credential, *params, endpoint=self.config.endpoint)

    async def analyze(
        self, url: str, credential: Credential | None, *params: LighthouseParam
    ) -> DecodedResponse[TPayload]:
        """
        Analyse ``url`` and return the decoded response.

        A runtime error reported inside a successful response is returned in
        the DecodedResponse, not raised.

        Raises:
            CredentialError: If the credential fails to produce a token
            TransportError: If the fetcher fails
            DecodeError: If the response body is malformed
            CompositeError: If the service answers with a non-2xx status
        """
        request_url = self.build_url(url, credential, *params)

        try:
            response = await self.fetcher.fetch(request_url)
        except PageSpeedError as e:
            e.url = e.url or url
            raise
        except Exception as e:
            raise TransportError(f"{type(e).__name__}: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            logger.debug(f"Service returned {response.status_code} for {url}")
            raise error_from_response(response.body, url=url, status_code=response.status_code)

        try:
            return self.decoder.decode(response.body, url=url)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"{type(e).__name__}: {e}", url=url) from e


async def run_lighthouse(
    url: str,
    credential: Credential | None,
    *params: LighthouseParam,
    client: PageSpeedClient[LighthouseResult] | None = None,
) -> LighthouseResult:
    """
    Run a PageSpeed analysis on the page at ``url``.

    Returns Lighthouse scores, audits and other information about the page.
    Every failure is raised as a PageSpeedError subclass carrying the url; a
    runtime error reported by Lighthouse is raised as a CompositeError.
    """
    if client is None:
        async with PageSpeedClient() as own_client:
            return await run_lighthouse(url, credential, *params, client=own_client)

    decoded = await client.analyze(url, credential, *params)
    if decoded.runtime_error is not None:
        raise decoded.runtime_error
    if decoded.payload is None:
        raise DecodeError("response carried neither a result nor an error", url=url)
    return decoded.payload
