"""Error types for PageSpeed API calls.

Every failure that can happen to a single job is a subclass of PageSpeedError,
so callers can catch the base class or test for a specific kind:

- TransportError: the fetcher could not get a response (network, DNS, timeout)
- DecodeError: a response body could not be parsed
- CredentialError: the credential could not supply a token
- JobCancelledError: the job was cancelled before it was admitted
- CompositeError: the service reported a structured failure
- RunWarning: a non-fatal warning returned next to a successful payload
"""

from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError


class PageSpeedError(Exception):
    """Base exception for all errors raised or recorded by this package."""

    def __init__(self, message: str = "", *, url: str = ""):
        super().__init__(message)
        self.message = message
        self.url = url

    def __str__(self) -> str:
        if self.url:
            return f'"{self.url}": "{self.message}"'
        return self.message


class TransportError(PageSpeedError):
    """The fetcher failed before a response was received."""


class JobTimeoutError(TransportError):
    """The job exceeded the configured timeout_per_job."""


class DecodeError(PageSpeedError):
    """
    A response body could not be decoded.

    ``status_code`` is the HTTP status of the response when it was not a
    success (None for undecodable 2xx bodies).
    """

    def __init__(self, message: str = "", *, url: str = "", status_code: int | None = None):
        super().__init__(message, url=url)
        self.status_code = status_code


class CredentialError(PageSpeedError):
    """The credential failed to produce a token."""


class JobCancelledError(PageSpeedError):
    """The job was cancelled before it acquired a concurrency slot."""


class RunWarning(PageSpeedError):
    """Non-fatal warning reported by Lighthouse alongside a result."""


@dataclass(eq=False)
class GoogleErrorRecord(Exception):
    """
    A single entry of the ``errors`` list of a Google API error response.

    See: https://developers.google.com/webmaster-tools/v1/errors
    """

    domain: str = ""
    reason: str = ""
    message: str = ""
    location_type: str = ""
    location: str = ""

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class CompositeError(PageSpeedError):
    """
    Standard error response of a Google API.

    Carries the HTTP status code, the top-level message and the component
    error records. The raw response body is kept for diagnostics.
    """

    def __init__(
        self,
        code: int,
        message: str,
        errors: list[GoogleErrorRecord] | None = None,
        *,
        url: str = "",
        raw: str = "",
    ):
        super().__init__(message, url=url)
        self.code = code
        self.errors: list[GoogleErrorRecord] = list(errors or [])
        self.raw = raw

    def top_level_record(self) -> GoogleErrorRecord:
        """Return the top-level fields as a record with empty metadata."""
        return GoogleErrorRecord(message=self.message)

    def details(self) -> str:
        """Return the raw response body, or the message if there is none."""
        return self.raw or self.message

    def __repr__(self) -> str:
        return (
            f"CompositeError(code={self.code!r}, message={self.message!r}, "
            f"errors={len(self.errors)}, url={self.url!r})"
        )


class _ErrorRecordBody(BaseModel):
    domain: str = ""
    reason: str = ""
    message: str = ""
    location_type: str = Field(default="", alias="locationType")
    location: str = ""


class ErrorBody(BaseModel):
    """Wire shape of the ``error`` object."""

    code: int = 0
    message: str = ""
    errors: list[_ErrorRecordBody] = Field(default_factory=list)

    def to_error(self, *, url: str = "", raw: str = "") -> CompositeError:
        records = [
            GoogleErrorRecord(
                domain=record.domain,
                reason=record.reason,
                message=record.message,
                location_type=record.location_type,
                location=record.location,
            )
            for record in self.errors
        ]
        return CompositeError(self.code, self.message, records, url=url, raw=raw)


class _ErrorEnvelope(BaseModel):
    error: ErrorBody | None = None


def error_from_response(
    body: bytes | str, *, url: str = "", status_code: int | None = None
) -> CompositeError:
    """
    Parse a non-success response body into a CompositeError.

    The raw body is stored on the returned error. ``status_code``, when given,
    is kept on the DecodeError raised for bodies that are not an error object
    and is used as the code if the body carries none.

    Raises:
        DecodeError: If the body is not JSON or has no ``error`` object
    """
    raw = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    prefix = f"HTTP {status_code}: " if status_code is not None else ""

    try:
        envelope = _ErrorEnvelope.model_validate_json(raw)
    except ValidationError as e:
        raise DecodeError(
            f"{prefix}unmarshal error: {e}", url=url, status_code=status_code
        ) from e

    if envelope.error is None:
        raise DecodeError(
            f"{prefix}response has no error object: {raw[:200]}",
            url=url,
            status_code=status_code,
        )

    if not envelope.error.code and status_code is not None:
        envelope.error.code = status_code
    return envelope.error.to_error(url=url, raw=raw)
