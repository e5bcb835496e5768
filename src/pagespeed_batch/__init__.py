"""Concurrent batch client for the PageSpeed Insights (Lighthouse) API.

This module runs many PageSpeed analyses under a fixed concurrency cap and
makes the service's structured errors easy to recognise.

Key features:
- Single, random and round-robin API key rotation (thread-safe)
- Bounded concurrent batch runner with index-stable results
- Cooperative cancellation and optional short-circuit on known failures
- Structural error signatures with regex message matching
- Observer pattern for monitoring
- Configuration-based setup

Example:
    >>> from pagespeed_batch import ConcurrentBatchRunner, RunnerConfig, rotating_api_keys
    >>> from pagespeed_batch import ERR_INVALID_KEY, matches
    >>>
    >>> runner = ConcurrentBatchRunner(config=RunnerConfig(max_concurrency=4))
    >>> results = await runner.run(["https://example.com"], rotating_api_keys("k1", "k2"))
    >>> for result in results:
    ...     if any(matches(err, ERR_INVALID_KEY) for err in result.errs()):
    ...         print("bad key")
"""

# Core classes
from .base import (
    BatchResult,
    DecodedResponse,
    Job,
    JobResult,
    JobStatus,
    ProgressCallbackFunc,
    jobs_from_urls,
)

# Classifiers
from .classifiers import (
    DefaultErrorClassifier,
    ErrorClassifier,
    ErrorInfo,
    PageSpeedErrorClassifier,
)

# Client
from .client import PageSpeedClient, run_lighthouse

# Configuration
from .core import ClientConfig, RunnerConfig

# Credentials
from .credentials import (
    ApiKey,
    Credential,
    RotationMode,
    credential_from_env,
    new_api_key,
    random_api_keys,
    rotating_api_keys,
)

# Errors
from .errors import (
    CompositeError,
    CredentialError,
    DecodeError,
    GoogleErrorRecord,
    JobCancelledError,
    JobTimeoutError,
    PageSpeedError,
    RunWarning,
    TransportError,
    error_from_response,
)

# Fetchers
from .fetchers import Fetcher, FetchResponse, HttpxFetcher

# Result decoding
from .lighthouse import Audit, AuditRef, Category, CategoryGroup, LighthouseDecoder, LighthouseResult

# Observers
from .observers import BaseObserver, MetricsObserver, ProcessingEvent, RunnerObserver

# Request building
from .request import (
    CATEGORY_ACCESSIBILITY,
    CATEGORY_ALL,
    CATEGORY_BEST_PRACTICES,
    CATEGORY_PERFORMANCE,
    CATEGORY_SEO,
    STRATEGY_DESKTOP,
    STRATEGY_MOBILE,
    LighthouseParam,
    create_lighthouse_url,
)

# Main runner
from .runner import ConcurrentBatchRunner, run_concurrent

# Error signatures
from .signatures import (
    DEFAULT_REGISTRY,
    ERR_FAILED_DOCUMENT_REQUEST,
    ERR_INVALID_CATEGORY,
    ERR_INVALID_KEY,
    ERR_INVALID_STRATEGY,
    ERR_INVALID_URL,
    ERR_QUOTA_EXHAUSTED,
    ERR_RATE_LIMIT_EXCEEDED,
    ERR_UNPROCESSABLE,
    ErrorSignature,
    SignatureRegistry,
    matches,
)

__all__ = [
    # Core
    "BatchResult",
    "DecodedResponse",
    "Job",
    "JobResult",
    "JobStatus",
    "ProgressCallbackFunc",
    "jobs_from_urls",
    # Configuration
    "ClientConfig",
    "RunnerConfig",
    # Credentials
    "ApiKey",
    "Credential",
    "RotationMode",
    "credential_from_env",
    "new_api_key",
    "random_api_keys",
    "rotating_api_keys",
    # Errors
    "CompositeError",
    "CredentialError",
    "DecodeError",
    "GoogleErrorRecord",
    "JobCancelledError",
    "JobTimeoutError",
    "PageSpeedError",
    "RunWarning",
    "TransportError",
    "error_from_response",
    # Error signatures
    "DEFAULT_REGISTRY",
    "ERR_FAILED_DOCUMENT_REQUEST",
    "ERR_INVALID_CATEGORY",
    "ERR_INVALID_KEY",
    "ERR_INVALID_STRATEGY",
    "ERR_INVALID_URL",
    "ERR_QUOTA_EXHAUSTED",
    "ERR_RATE_LIMIT_EXCEEDED",
    "ERR_UNPROCESSABLE",
    "ErrorSignature",
    "SignatureRegistry",
    "matches",
    # Classifiers
    "ErrorClassifier",
    "ErrorInfo",
    "DefaultErrorClassifier",
    "PageSpeedErrorClassifier",
    # Request building
    "CATEGORY_ACCESSIBILITY",
    "CATEGORY_ALL",
    "CATEGORY_BEST_PRACTICES",
    "CATEGORY_PERFORMANCE",
    "CATEGORY_SEO",
    "STRATEGY_DESKTOP",
    "STRATEGY_MOBILE",
    "LighthouseParam",
    "create_lighthouse_url",
    # Result decoding
    "Audit",
    "AuditRef",
    "Category",
    "CategoryGroup",
    "LighthouseDecoder",
    "LighthouseResult",
    # Fetchers and client
    "Fetcher",
    "FetchResponse",
    "HttpxFetcher",
    "PageSpeedClient",
    "run_lighthouse",
    # Observers
    "RunnerObserver",
    "BaseObserver",
    "MetricsObserver",
    "ProcessingEvent",
    # Runner
    "ConcurrentBatchRunner",
    "run_concurrent",
]

__version__ = "0.1.0"
