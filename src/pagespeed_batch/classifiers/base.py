"""Error classification for job failures."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..errors import (
    CompositeError,
    CredentialError,
    DecodeError,
    JobCancelledError,
    JobTimeoutError,
    RunWarning,
    TransportError,
)


@dataclass
class ErrorInfo:
    """Structured information about an error."""

    is_rate_limit: bool
    is_timeout: bool
    is_transport: bool
    error_category: str
    signature: str | None = None


class ErrorClassifier(ABC):
    """Abstract base class for classifying job errors."""

    @abstractmethod
    def classify(self, exception: BaseException) -> ErrorInfo:
        """
        Classify an exception recorded on a job.

        Args:
            exception: The exception to classify

        Returns:
            ErrorInfo with classification details
        """
        pass


class DefaultErrorClassifier(ErrorClassifier):
    """Classify errors by their type only."""

    def classify(self, exception: BaseException) -> ErrorInfo:
        if isinstance(exception, JobCancelledError):
            return ErrorInfo(
                is_rate_limit=False,
                is_timeout=False,
                is_transport=False,
                error_category="cancelled",
            )

        # Check timeouts before the TransportError they derive from
        if isinstance(exception, (JobTimeoutError, TimeoutError)):
            return ErrorInfo(
                is_rate_limit=False,
                is_timeout=True,
                is_transport=True,
                error_category="timeout",
            )

        if isinstance(exception, (TransportError, ConnectionError)):
            return ErrorInfo(
                is_rate_limit=False,
                is_timeout=False,
                is_transport=True,
                error_category="transport_error",
            )

        if isinstance(exception, DecodeError):
            return ErrorInfo(
                is_rate_limit=False,
                is_timeout=False,
                is_transport=False,
                error_category="decode_error",
            )

        if isinstance(exception, CredentialError):
            return ErrorInfo(
                is_rate_limit=False,
                is_timeout=False,
                is_transport=False,
                error_category="credential_error",
            )

        if isinstance(exception, CompositeError):
            return ErrorInfo(
                is_rate_limit=exception.code == 429,
                is_timeout=False,
                is_transport=False,
                error_category="service_error",
            )

        if isinstance(exception, RunWarning):
            return ErrorInfo(
                is_rate_limit=False,
                is_timeout=False,
                is_transport=False,
                error_category="run_warning",
            )

        return ErrorInfo(
            is_rate_limit=False,
            is_timeout=False,
            is_transport=False,
            error_category="unknown",
        )
