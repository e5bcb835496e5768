"""Jobs, per-job results and batch summaries."""

import threading
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from .errors import CompositeError, JobCancelledError, RunWarning
from .request import LighthouseParam

TPayload = TypeVar("TPayload")  # Decoded success payload type
TContext = TypeVar("TContext")  # Optional context passed through


@dataclass
class Job(Generic[TContext]):
    """
    A single page to analyse.

    Attributes:
        url: The page URL; also the identity of the job's result
        params: Request parameters for this job
        context: Optional data passed through to the result
    """

    url: str
    params: tuple[LighthouseParam, ...] = ()
    context: TContext | None = None

    def __post_init__(self):
        """Validate job fields."""
        if not self.url or not isinstance(self.url, str):
            raise ValueError(
                f"url must be a non-empty string (got {type(self.url).__name__}: {repr(self.url)}). "
                f"Provide the address of the page to analyse."
            )
        if not self.url.strip():
            raise ValueError(
                f"url cannot be whitespace only (got {repr(self.url)}). "
                f"Provide the address of the page to analyse."
            )
        self.params = tuple(self.params)


def jobs_from_urls(urls: list[str], *params: LighthouseParam) -> list[Job]:
    """Build one job per URL, all sharing the same params."""
    return [Job(url=u, params=params) for u in urls]


@dataclass
class DecodedResponse(Generic[TPayload]):
    """Outputs of a ResponseDecoder for one response body."""

    payload: TPayload | None = None
    runtime_error: CompositeError | None = None
    warnings: list[RunWarning] = field(default_factory=list)


class JobStatus(Enum):
    """Outcome of a job as seen by the caller."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    WARNED = "warned"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobResult(Generic[TPayload, TContext]):
    """
    Outcome of one job.

    Holds the request identity (url), the success payload, an internal error
    (transport, decode, credential, timeout or cancellation), the error reported
    by the service and any run warnings. A result is created empty when the job
    is submitted and filled in by the worker that runs it.
    """

    def __init__(self, url: str, context: TContext | None = None):
        self.url = url
        self.context = context
        self.duration: float | None = None
        self._payload: TPayload | None = None
        self._error: Exception | None = None
        self._runtime_error: CompositeError | None = None
        self._warnings: list[RunWarning] = []
        self._lock = threading.Lock()

    @property
    def payload(self) -> TPayload | None:
        return self._payload

    @property
    def error(self) -> Exception | None:
        """Internal error (transport, decode, credential, timeout, cancellation)."""
        return self._error

    @property
    def runtime_error(self) -> CompositeError | None:
        """Failure reported by the service."""
        return self._runtime_error

    @property
    def warnings(self) -> list[RunWarning]:
        with self._lock:
            return list(self._warnings)

    def set_payload(self, payload: TPayload) -> None:
        with self._lock:
            self._payload = payload

    def set_err(self, err: Exception) -> None:
        """
        Record a failure.

        CompositeErrors go to the runtime error slot, RunWarnings are appended
        to the warnings, anything else is the internal error. Recording the same
        error twice keeps a single entry.
        """
        with self._lock:
            if isinstance(err, CompositeError):
                self._runtime_error = err
            elif isinstance(err, RunWarning):
                if not any(w is err for w in self._warnings):
                    self._warnings.append(err)
            else:
                self._error = err

    def apply(self, decoded: DecodedResponse[TPayload]) -> None:
        """Copy a decoded response into this result, field by field."""
        with self._lock:
            self._payload = decoded.payload
            if decoded.runtime_error is not None:
                self._runtime_error = decoded.runtime_error
            for warning in decoded.warnings:
                if not any(w is warning for w in self._warnings):
                    self._warnings.append(warning)

    def errs(self) -> list[Exception]:
        """
        Return every error of this job in a fixed order.

        The internal error comes first, then the error reported by the service,
        then each run warning in the order received. Empty when the job had no
        error of any kind.
        """
        with self._lock:
            errors: list[Exception] = []
            if self._error is not None:
                errors.append(self._error)
            if self._runtime_error is not None:
                errors.append(self._runtime_error)
            errors.extend(self._warnings)
            return errors

    @property
    def status(self) -> JobStatus:
        with self._lock:
            if isinstance(self._error, JobCancelledError):
                return JobStatus.CANCELLED
            if self._error is not None or self._runtime_error is not None:
                return JobStatus.FAILED
            if self._payload is None:
                return JobStatus.PENDING
            if self._warnings:
                return JobStatus.WARNED
            return JobStatus.SUCCEEDED

    @property
    def success(self) -> bool:
        """True if the job produced a payload, with or without warnings."""
        return self.status in (JobStatus.SUCCEEDED, JobStatus.WARNED)

    def __repr__(self) -> str:
        return f"JobResult(url={self.url!r}, status={self.status.value})"


@dataclass
class BatchResult(Generic[TPayload, TContext]):
    """
    Result of running a batch of jobs.

    ``results[i]`` always belongs to the i-th submitted job.

    Attributes:
        results: Per-job results, index-aligned with the input jobs
        total_jobs: Number of jobs in the batch
        succeeded: Jobs with a payload and no warnings
        warned: Jobs with a payload and at least one warning
        failed: Jobs with an internal or service error
        cancelled: Jobs cancelled before admission
    """

    results: list[JobResult[TPayload, TContext]]
    total_jobs: int = 0
    succeeded: int = 0
    warned: int = 0
    failed: int = 0
    cancelled: int = 0

    def __post_init__(self):
        """Calculate summary statistics from results."""
        statuses = [r.status for r in self.results]
        self.total_jobs = len(self.results)
        self.succeeded = statuses.count(JobStatus.SUCCEEDED)
        self.warned = statuses.count(JobStatus.WARNED)
        self.failed = statuses.count(JobStatus.FAILED)
        self.cancelled = statuses.count(JobStatus.CANCELLED)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> JobResult[TPayload, TContext]:
        return self.results[index]

    def __iter__(self) -> Iterator[JobResult[TPayload, TContext]]:
        return iter(self.results)

    def errors(self) -> list[tuple[str, Exception]]:
        """Return (url, error) for every error of every job, in job order."""
        return [(r.url, err) for r in self.results for err in r.errs()]


# Type alias for progress callback function (completed, total, current_url)
ProgressCallbackFunc = Callable[[int, int, str], Awaitable[None] | None]
