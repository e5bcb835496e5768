"""PageSpeed-specific error classification using registered signatures."""

from ..signatures import (
    DEFAULT_REGISTRY,
    ERR_QUOTA_EXHAUSTED,
    ERR_RATE_LIMIT_EXCEEDED,
    ERR_UNPROCESSABLE,
    SignatureRegistry,
)
from .base import DefaultErrorClassifier, ErrorClassifier, ErrorInfo

# Signatures that mean "too many requests"
RATE_LIMIT_SIGNATURES = (
    ERR_RATE_LIMIT_EXCEEDED.name,
    ERR_QUOTA_EXHAUSTED.name,
    ERR_UNPROCESSABLE.name,
)


class PageSpeedErrorClassifier(ErrorClassifier):
    """
    Classify errors against a signature registry.

    The category of an error matching a registered signature is the
    signature's name. Other errors fall back to DefaultErrorClassifier.
    """

    def __init__(
        self,
        registry: SignatureRegistry = DEFAULT_REGISTRY,
        fallback: ErrorClassifier | None = None,
    ):
        self.registry = registry
        self.fallback = fallback or DefaultErrorClassifier()

    def classify(self, exception: BaseException) -> ErrorInfo:
        signature = self.registry.first(exception)
        if signature is None:
            return self.fallback.classify(exception)

        return ErrorInfo(
            is_rate_limit=signature.name in RATE_LIMIT_SIGNATURES,
            is_timeout=False,
            is_transport=False,
            error_category=signature.name,
            signature=signature.name,
        )
