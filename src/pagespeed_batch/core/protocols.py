"""Type protocols for the collaborators the runner depends on."""

from typing import TYPE_CHECKING, Protocol, TypeVar

if TYPE_CHECKING:
    from ..base import DecodedResponse
    from ..fetchers import FetchResponse

TPayload = TypeVar("TPayload", covariant=True)


class FetcherLike(Protocol):
    """Protocol that any fetcher must satisfy."""

    async def fetch(self, url: str) -> "FetchResponse":
        """GET the url and return its status code and body."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...


class ResponseDecoder(Protocol[TPayload]):
    """Protocol for decoders of successful response bodies."""

    def decode(self, body: bytes | str, *, url: str = "") -> "DecodedResponse[TPayload]":
        """Decode a body into payload, runtime error and warnings."""
        ...
