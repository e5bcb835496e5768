"""Concurrent batch runner"""

import asyncio
import inspect
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any, Generic

from .base import BatchResult, Job, JobResult, JobStatus, ProgressCallbackFunc, TContext, TPayload
from .classifiers import ErrorClassifier, PageSpeedErrorClassifier
from .client import PageSpeedClient
from .core import ClientConfig, FetcherLike, ResponseDecoder, RunnerConfig
from .credentials import Credential
from .errors import JobCancelledError, JobTimeoutError, PageSpeedError, TransportError
from .observers import ProcessingEvent, RunnerObserver
from .signatures import DEFAULT_REGISTRY, SignatureRegistry, matches

logger = logging.getLogger(__name__)


@dataclass
class _BatchState:
    """Counters for one run() call. Only touched from the event loop thread."""

    total: int
    start_time: float
    completed: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0


class ConcurrentBatchRunner(Generic[TPayload, TContext]):
    """
    Runs many independent PageSpeed analyses with at most ``max_concurrency``
    of them in flight.

    Every job gets its own task. A task waits on the batch's admission gate (a
    semaphore sized to ``max_concurrency``) before calling the service and
    releases it when the call finishes, whatever the outcome. Results are
    written into slots created up front, so ``run(jobs)[i]`` always belongs to
    ``jobs[i]`` regardless of completion order.

    Cancellation is cooperative: setting the ``cancel`` event stops jobs that
    have not been admitted yet (they are recorded with a JobCancelledError and
    never call the service) but does not interrupt calls already in flight.
    """

    def __init__(
        self,
        max_concurrency: int | None = None,
        config: RunnerConfig | None = None,
        client: PageSpeedClient[TPayload] | None = None,
        error_classifier: ErrorClassifier | None = None,
        registry: SignatureRegistry = DEFAULT_REGISTRY,
        observers: list[RunnerObserver] | None = None,
        progress_callback: ProgressCallbackFunc | None = None,
    ):
        """
        Initialize the batch runner.

        Args:
            max_concurrency: Maximum jobs in flight (overrides config.max_concurrency)
            config: Runner configuration object
            client: Client used for each call (default: PageSpeedClient over httpx)
            error_classifier: Classifier used for logging and metrics
                (default: PageSpeedErrorClassifier)
            registry: Signatures that config.short_circuit_on refers to
            observers: List of observers for events
            progress_callback: Optional callback(completed, total, current_url)
        """
        if config is None:
            config = RunnerConfig(max_concurrency=5 if max_concurrency is None else max_concurrency)
        elif max_concurrency is not None:
            config = replace(config, max_concurrency=max_concurrency)

        config.validate()

        unknown = [name for name in config.short_circuit_on if name not in registry]
        if unknown:
            raise ValueError(
                f"short_circuit_on contains unknown signature names {unknown}. "
                f"Use names from the registry: {list(registry)}."
            )

        self.config = config
        self.registry = registry
        self.error_classifier = error_classifier or PageSpeedErrorClassifier(registry)
        self.observers = observers or []
        self.progress_callback = progress_callback

        self._owns_client = client is None
        self.client: PageSpeedClient[Any] = client or PageSpeedClient()

    async def __aenter__(self):
        """Context manager entry - returns self for use in async with."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - closes the client if the runner created it."""
        await self.close()
        return False  # Don't suppress exceptions

    async def close(self) -> None:
        if self._owns_client:
            await self.client.close()

    async def run(
        self,
        jobs: Sequence[Job[TContext] | str],
        credential: Credential | None,
        cancel: asyncio.Event | None = None,
    ) -> BatchResult[TPayload, TContext]:
        """
        Run every job and return their results in input order.

        Args:
            jobs: Jobs (or bare URLs) to analyse
            credential: Token source shared by every job of the batch
            cancel: Optional event; once set, jobs not yet admitted are cancelled

        Returns:
            BatchResult whose i-th result belongs to the i-th job
        """
        job_list = [j if isinstance(j, Job) else Job(url=j) for j in jobs]
        results: list[JobResult[TPayload, TContext]] = [
            JobResult(job.url, job.context) for job in job_list
        ]
        if not job_list:
            return BatchResult(results=results)

        # Admission gate and stop signal are scoped to this call
        gate = asyncio.Semaphore(self.config.max_concurrency)
        stop = asyncio.Event()
        watcher: asyncio.Task | None = None
        if cancel is not None:
            if cancel.is_set():
                stop.set()
            else:
                watcher = asyncio.create_task(self._watch_cancel(cancel, stop))

        state = _BatchState(total=len(job_list), start_time=time.time())

        logger.info(
            f"ℹ️  Starting batch of {len(job_list)} job(s) "
            f"(max_concurrency={self.config.max_concurrency})"
        )
        await self._emit_event(
            ProcessingEvent.BATCH_STARTED,
            {"total": len(job_list), "max_concurrency": self.config.max_concurrency},
        )

        tasks = [
            asyncio.create_task(
                self._run_job(index, job, credential, gate, stop, results[index], state)
            )
            for index, job in enumerate(job_list)
        ]

        try:
            await asyncio.gather(*tasks)
        except Exception:
            # The gate itself failed: stop admitting and wait for admitted jobs
            stop.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        finally:
            if watcher is not None:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)

        batch = BatchResult(results=results)
        elapsed = time.time() - state.start_time
        logger.info(
            f"✓ Batch complete in {elapsed:.1f}s: {batch.succeeded} succeeded, "
            f"{batch.warned} with warnings, {batch.failed} failed, {batch.cancelled} cancelled"
        )
        await self._emit_event(
            ProcessingEvent.BATCH_COMPLETED,
            {
                "total": batch.total_jobs,
                "succeeded": batch.succeeded,
                "warned": batch.warned,
                "failed": batch.failed,
                "cancelled": batch.cancelled,
                "duration": elapsed,
            },
        )
        return batch

    @staticmethod
    async def _watch_cancel(cancel: asyncio.Event, stop: asyncio.Event) -> None:
        await cancel.wait()
        stop.set()

    async def _acquire_slot(self, gate: asyncio.Semaphore, stop: asyncio.Event) -> bool:
        """
        Wait for a free slot or the stop signal, whichever comes first.

        Returns True with the slot held, or False (no slot held) if the batch
        was stopped before the slot was granted.
        """
        if stop.is_set():
            return False

        acquire = asyncio.ensure_future(gate.acquire())
        stopped = asyncio.ensure_future(stop.wait())
        try:
            await asyncio.wait({acquire, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not acquire.done():
                acquire.cancel()
            await asyncio.gather(acquire, stopped, return_exceptions=True)

        if acquire.cancelled():
            return False
        if acquire.exception() is not None:
            raise acquire.exception()  # type: ignore[misc]

        if stop.is_set():
            gate.release()
            return False
        return True

    async def _run_job(
        self,
        index: int,
        job: Job[TContext],
        credential: Credential | None,
        gate: asyncio.Semaphore,
        stop: asyncio.Event,
        result: JobResult[TPayload, TContext],
        state: _BatchState,
    ) -> None:
        """Admit, execute and record one job. Writes only to its own result."""
        if not await self._acquire_slot(gate, stop):
            result.set_err(JobCancelledError("job cancelled before start", url=job.url))
            logger.debug(f"Job {index} ({job.url}) cancelled before admission")
            await self._emit_event(ProcessingEvent.JOB_CANCELLED, {"url": job.url, "index": index})
            await self._job_finished(result, state)
            return

        tripped = False
        try:
            await self._execute(index, job, credential, result)
            tripped = self._check_short_circuit(result, stop)
        finally:
            gate.release()

        if tripped:
            await self._emit_event(ProcessingEvent.SHORT_CIRCUIT, {"url": job.url, "index": index})

        await self._job_finished(result, state)

    async def _execute(
        self,
        index: int,
        job: Job[TContext],
        credential: Credential | None,
        result: JobResult[TPayload, TContext],
    ) -> None:
        """Call the service for one job and copy the outcome into its result."""
        start_time = time.time()
        await self._emit_event(ProcessingEvent.JOB_STARTED, {"url": job.url, "index": index})

        timeout = self.config.timeout_per_job
        try:
            call = self.client.analyze(job.url, credential, *job.params)
            if timeout is not None:
                decoded = await asyncio.wait_for(call, timeout=timeout)
            else:
                decoded = await call
        except (TimeoutError, asyncio.TimeoutError):
            result.set_err(JobTimeoutError(f"job exceeded timeout of {timeout}s", url=job.url))
        except PageSpeedError as e:
            result.set_err(e)
        except Exception as e:
            logger.error(
                f"✗ Unexpected {type(e).__name__} while running {job.url}: {str(e)[:200]}"
            )
            err = TransportError(f"{type(e).__name__}: {e}", url=job.url)
            err.__cause__ = e
            result.set_err(err)
        else:
            result.apply(decoded)

        result.duration = time.time() - start_time
        await self._report(index, job, result)

    async def _report(
        self, index: int, job: Job[TContext], result: JobResult[TPayload, TContext]
    ) -> None:
        """Log the outcome of a finished call and emit the matching event."""
        duration = result.duration or 0.0
        warnings = len(result.warnings)

        if result.status in (JobStatus.SUCCEEDED, JobStatus.WARNED):
            message = f"✓ Completed {job.url} in {duration:.1f}s"
            if warnings:
                message += f" ({warnings} warning(s))"
            if self.config.enable_detailed_logging:
                logger.info(message)
            else:
                logger.debug(message)
            await self._emit_event(
                ProcessingEvent.JOB_SUCCEEDED,
                {"url": job.url, "index": index, "duration": duration, "warnings": warnings},
            )
            return

        error = result.error or result.runtime_error
        error_info = self.error_classifier.classify(error) if error is not None else None
        category = error_info.error_category if error_info else "unknown"
        logger.error(f"✗ Job {index} failed for {job.url} [{category}]: {str(error)[:300]}")
        await self._emit_event(
            ProcessingEvent.JOB_FAILED,
            {
                "url": job.url,
                "index": index,
                "duration": duration,
                "warnings": warnings,
                "error_type": type(error).__name__,
                "error_category": category,
            },
        )

    def _check_short_circuit(
        self, result: JobResult[TPayload, TContext], stop: asyncio.Event
    ) -> bool:
        """Stop the batch if the job failed with a configured signature."""
        if not self.config.short_circuit_on or stop.is_set():
            return False

        for error in (result.runtime_error, result.error):
            if error is None:
                continue
            for name in self.config.short_circuit_on:
                if matches(error, self.registry[name]):
                    logger.warning(
                        f"⚠️  {result.url} failed with {name}; "
                        f"cancelling jobs that have not started yet"
                    )
                    stop.set()
                    return True
        return False

    async def _job_finished(
        self, result: JobResult[TPayload, TContext], state: _BatchState
    ) -> None:
        """Update counters, report progress."""
        state.completed += 1
        status = result.status
        if status is JobStatus.CANCELLED:
            state.cancelled += 1
        elif status is JobStatus.FAILED:
            state.failed += 1
        else:
            state.succeeded += 1

        if state.completed % self.config.progress_interval != 0 and state.completed != state.total:
            return

        elapsed = time.time() - state.start_time
        calls_per_sec = state.completed / elapsed if elapsed > 0 else 0
        logger.info(
            f"ℹ️  Progress: {state.completed}/{state.total} "
            f"({state.completed / state.total * 100:.1f}%) | "
            f"Succeeded: {state.succeeded}, Failed: {state.failed}, "
            f"Cancelled: {state.cancelled} | {calls_per_sec:.2f} jobs/sec"
        )
        await self._run_progress_callback(state.completed, state.total, result.url)

    async def _run_progress_callback(self, completed: int, total: int, current_url: str) -> None:
        if self.progress_callback is None:
            return

        try:
            outcome = self.progress_callback(completed, total, current_url)
            if inspect.isawaitable(outcome):
                await asyncio.wait_for(outcome, timeout=5.0)
        except (TimeoutError, asyncio.TimeoutError):
            logger.warning("⚠️  Progress callback timed out after 5s")
        except Exception as e:
            logger.warning(f"⚠️  Progress callback failed: {e}")

    async def _emit_event(self, event: ProcessingEvent, data: dict | None = None) -> None:
        """Emit event to all observers."""
        if not self.observers:
            return

        event_data = data or {}
        for observer in self.observers:
            try:
                await asyncio.wait_for(
                    observer.on_event(event, event_data),
                    timeout=5.0,  # 5 second timeout for observer callbacks
                )
            except (TimeoutError, asyncio.TimeoutError):
                logger.warning(f"⚠️  Observer callback timed out after 5s for event {event.name}")
            except Exception as e:
                logger.warning(f"⚠️  Observer error: {e}")


async def run_concurrent(
    jobs: Sequence[Job | str],
    credential: Credential | None,
    max_concurrency: int,
    cancel: asyncio.Event | None = None,
    *,
    fetcher: FetcherLike | None = None,
    decoder: ResponseDecoder | None = None,
    client_config: ClientConfig | None = None,
    config: RunnerConfig | None = None,
    observers: list[RunnerObserver] | None = None,
) -> BatchResult:
    """
    Run ``jobs`` with at most ``max_concurrency`` in flight.

    The client and runner live only for this call.
    """
    client: PageSpeedClient[Any] = PageSpeedClient(fetcher, decoder, client_config)
    runner: ConcurrentBatchRunner[Any, Any] = ConcurrentBatchRunner(
        max_concurrency=max_concurrency,
        config=config,
        client=client,
        observers=observers,
    )
    async with client:
        return await runner.run(jobs, credential, cancel)
