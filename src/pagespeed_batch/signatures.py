"""Known PageSpeed API failure signatures and structural matching.

The service returns constant metadata (domain, reason, location) for a failure
class but interpolates request-specific text into the message. A signature's
message may therefore be a regular expression that is searched in the observed
message when the two are not literally equal.
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType

from .errors import CompositeError, GoogleErrorRecord


@dataclass(frozen=True)
class ErrorSignature:
    """
    Registered template of a known failure class.

    Attributes:
        name: Registry name of the signature
        domain: Exact-match domain
        reason: Exact-match reason
        message: Exact message, or a pattern searched in the observed message
        location_type: Exact-match location type
        location: Exact-match location
    """

    name: str
    domain: str = ""
    reason: str = ""
    message: str = ""
    location_type: str = ""
    location: str = ""

    def as_record(self) -> GoogleErrorRecord:
        """Return a record carrying the same fields (message taken literally)."""
        return GoogleErrorRecord(
            domain=self.domain,
            reason=self.reason,
            message=self.message,
            location_type=self.location_type,
            location=self.location,
        )


@lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error:
        return None


def _record_matches(record: GoogleErrorRecord, signature: ErrorSignature) -> bool:
    if record.domain != signature.domain:
        return False
    if record.reason != signature.reason:
        return False
    if record.location_type != signature.location_type:
        return False
    if record.location != signature.location:
        return False

    if record.message == signature.message:
        return True
    # An empty pattern would match any message
    if not signature.message:
        return False

    compiled = _compile(signature.message)
    if compiled is None:
        return False
    return compiled.search(record.message) is not None


def matches(observed: BaseException | None, signature: ErrorSignature) -> bool:
    """
    Report whether ``observed`` is an instance of the failure ``signature``.

    A GoogleErrorRecord matches when domain, reason, location_type and location
    are equal and the message is equal or matched by the signature's message
    used as a pattern (an empty signature message only matches an empty
    message). A CompositeError matches when its top-level record or any
    component record matches. Other PageSpeedErrors are unwrapped through
    ``__cause__``.

    Matching is one-directional: only the signature side is read as a pattern.
    """
    if observed is None:
        return False

    if isinstance(observed, GoogleErrorRecord):
        return _record_matches(observed, signature)

    if isinstance(observed, CompositeError):
        if _record_matches(observed.top_level_record(), signature):
            return True
        return any(matches(component, signature) for component in observed.errors)

    return matches(observed.__cause__, signature)


class SignatureRegistry(Mapping[str, ErrorSignature]):
    """Read-only, ordered collection of named signatures."""

    def __init__(self, signatures: list[ErrorSignature]):
        entries: dict[str, ErrorSignature] = {}
        for signature in signatures:
            if signature.name in entries:
                raise ValueError(
                    f"Duplicate signature name {signature.name!r}. "
                    f"Each registered signature needs a unique name."
                )
            entries[signature.name] = signature
        self._entries = MappingProxyType(entries)

    def __getitem__(self, name: str) -> ErrorSignature:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, observed: BaseException | None) -> list[ErrorSignature]:
        """Return every signature matching ``observed``, in registration order."""
        return [sig for sig in self._entries.values() if matches(observed, sig)]

    def first(self, observed: BaseException | None) -> ErrorSignature | None:
        """Return the first signature matching ``observed``, or None."""
        for signature in self._entries.values():
            if matches(observed, signature):
                return signature
        return None


# Unreachable document (invalid domain, server down)
ERR_FAILED_DOCUMENT_REQUEST = ErrorSignature(
    name="failed_document_request",
    message=(
        "Lighthouse returned error: FAILED_DOCUMENT_REQUEST. Lighthouse was unable to "
        "reliably load the page you requested. Make sure you are testing the correct URL "
        "and that the server is properly responding to all requests. "
        "(Details: net::ERR_CONNECTION_FAILED)"
    ),
    domain="lighthouse",
    reason="lighthouseUserError",
)

# Too many requests in flight
ERR_UNPROCESSABLE = ErrorSignature(
    name="unprocessable",
    message="Unable to process request. Please wait a while and try again.",
    domain="global",
    reason="internalError",
)

ERR_INVALID_KEY = ErrorSignature(
    name="invalid_key",
    message="API key not valid. Please pass a valid API key.",
    domain="global",
    reason="badRequest",
)

ERR_INVALID_CATEGORY = ErrorSignature(
    name="invalid_category",
    message=(
        r"^Invalid value at 'category' \(type\.googleapis\.com/google\.chrome\.pagespeedonline"
        r"\.v5\.PagespeedonlinePagespeedapiRunpagespeedRequest\.Category\), .*$"
    ),
    reason="invalid",
)

ERR_INVALID_STRATEGY = ErrorSignature(
    name="invalid_strategy",
    message=(
        r"^Invalid value at 'strategy' \(type\.googleapis\.com/google\.chrome\.pagespeedonline"
        r"\.v5\.PagespeedonlinePagespeedapiRunpagespeedRequest\.Strategy\), .*$"
    ),
    reason="invalid",
)

ERR_INVALID_URL = ErrorSignature(
    name="invalid_url",
    message=(
        r"^Invalid value '.*'\. Values must match the following regular expression: "
        r"'\(\?i\)\(url:\|origin:\)\?http\(s\)\?://\.\*'$"
    ),
    domain="gdata.CoreErrorDomain",
    reason="INVALID_PARAMETER",
    location_type="other",
    location="url",
)

ERR_RATE_LIMIT_EXCEEDED = ErrorSignature(
    name="rate_limit_exceeded",
    message=(
        r"^Quota exceeded for quota metric 'Queries' and limit 'Queries per minute' of "
        r"service 'pagespeedonline\.googleapis\.com' for consumer '.*'\.$"
    ),
    domain="global",
    reason="rateLimitExceeded",
)

ERR_QUOTA_EXHAUSTED = ErrorSignature(
    name="quota_exhausted",
    message=(
        r"^Quota exceeded for quota metric 'Queries' and limit 'Queries per day' of "
        r"service 'pagespeedonline\.googleapis\.com' for consumer '.*'\.$"
    ),
    domain="global",
    reason="rateLimitExceeded",
)

DEFAULT_REGISTRY = SignatureRegistry(
    [
        ERR_FAILED_DOCUMENT_REQUEST,
        ERR_UNPROCESSABLE,
        ERR_INVALID_KEY,
        ERR_INVALID_CATEGORY,
        ERR_INVALID_STRATEGY,
        ERR_INVALID_URL,
        ERR_RATE_LIMIT_EXCEEDED,
        ERR_QUOTA_EXHAUSTED,
    ]
)
