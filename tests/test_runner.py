"""Tests for the concurrent batch runner using MockFetcher.

These tests don't require any API keys and can be run in CI/CD.
"""

import asyncio

import pytest

from pagespeed_batch import (
    ERR_INVALID_KEY,
    CompositeError,
    ConcurrentBatchRunner,
    Credential,
    CredentialError,
    DecodeError,
    Job,
    JobCancelledError,
    JobStatus,
    JobTimeoutError,
    PageSpeedClient,
    RunnerConfig,
    RunWarning,
    TransportError,
    matches,
    new_api_key,
    rotating_api_keys,
    run_concurrent,
)
from pagespeed_batch.testing import MockFetcher, MockResponse, error_body, lighthouse_body

INVALID_KEY_RESPONSE = MockResponse(
    status_code=400,
    body=error_body(400, ERR_INVALID_KEY.message, [ERR_INVALID_KEY.as_record()]),
)


def make_runner(fetcher: MockFetcher, **config_kwargs) -> ConcurrentBatchRunner:
    config = RunnerConfig(**config_kwargs)
    return ConcurrentBatchRunner(config=config, client=PageSpeedClient(fetcher=fetcher))


@pytest.mark.asyncio
async def test_ok_and_invalid_key():
    """One job succeeds, the other fails with the well-known invalid key error."""
    fetcher = MockFetcher(responses={"https://fail.example": INVALID_KEY_RESPONSE})

    results = await run_concurrent(
        ["https://ok.example", "https://fail.example"],
        new_api_key("not-a-key"),
        2,
        fetcher=fetcher,
    )

    assert results[0].errs() == []
    assert results[0].status is JobStatus.SUCCEEDED
    assert results[0].payload.score("performance") == 90

    errs = results[1].errs()
    assert len(errs) == 1
    assert matches(errs[0], ERR_INVALID_KEY)
    assert isinstance(errs[0], CompositeError)
    assert errs[0].url == "https://fail.example"
    assert results[1].payload is None

    assert results.succeeded == 1
    assert results.failed == 1


@pytest.mark.asyncio
async def test_empty_batch():
    fetcher = MockFetcher()

    result = await make_runner(fetcher).run([], new_api_key("k"))

    assert result.total_jobs == 0
    assert len(result.results) == 0
    assert fetcher.call_count == 0


@pytest.mark.asyncio
async def test_results_follow_input_order():
    """Later jobs finish first, results still line up with the input."""
    urls = [f"https://site{i}.example/" for i in range(10)]

    def latency(page: str) -> float:
        index = urls.index(page)
        return (len(urls) - index) * 0.01

    fetcher = MockFetcher(latency=latency)
    jobs = [Job(url=u, context={"index": i}) for i, u in enumerate(urls)]

    result = await make_runner(fetcher, max_concurrency=10).run(jobs, None)

    assert len(result) == len(jobs)
    for i, job_result in enumerate(result):
        assert job_result.url == jobs[i].url
        assert job_result.context == {"index": i}
        assert job_result.payload.requested_url.geturl() == jobs[i].url


@pytest.mark.asyncio
async def test_bare_urls_accepted():
    fetcher = MockFetcher()

    result = await make_runner(fetcher).run(["https://a.example/", "https://b.example/"], None)

    assert [r.url for r in result] == ["https://a.example/", "https://b.example/"]
    assert result.succeeded == 2


@pytest.mark.asyncio
async def test_cancel_before_start():
    """A batch cancelled up front records a cancellation for every job."""
    fetcher = MockFetcher()
    cancel = asyncio.Event()
    cancel.set()
    jobs = [f"https://site{i}.example/" for i in range(5)]

    result = await make_runner(fetcher, max_concurrency=2).run(jobs, new_api_key("k"), cancel)

    assert len(result) == 5
    assert fetcher.call_count == 0
    assert result.cancelled == 5
    for job_result in result:
        errs = job_result.errs()
        assert len(errs) == 1
        assert isinstance(errs[0], JobCancelledError)


@pytest.mark.asyncio
async def test_cancel_does_not_interrupt_in_flight_jobs():
    """Admitted jobs finish; waiting jobs are cancelled."""
    fetcher = MockFetcher(latency=0.2)
    cancel = asyncio.Event()
    jobs = [f"https://site{i}.example/" for i in range(6)]

    async def cancel_soon():
        await asyncio.sleep(0.05)
        cancel.set()

    canceller = asyncio.create_task(cancel_soon())
    result = await make_runner(fetcher, max_concurrency=2).run(jobs, None, cancel)
    await canceller

    assert fetcher.call_count == 2
    assert [r.status for r in result] == [JobStatus.SUCCEEDED] * 2 + [JobStatus.CANCELLED] * 4


@pytest.mark.asyncio
async def test_short_circuit_on_invalid_key():
    """A job failing with a configured signature cancels the jobs still waiting."""
    fetcher = MockFetcher(default=INVALID_KEY_RESPONSE)
    jobs = [f"https://site{i}.example/" for i in range(4)]

    result = await make_runner(
        fetcher, max_concurrency=1, short_circuit_on=("invalid_key",)
    ).run(jobs, new_api_key("bad"))

    assert fetcher.call_count == 1
    assert result[0].status is JobStatus.FAILED
    assert matches(result[0].runtime_error, ERR_INVALID_KEY)
    assert all(r.status is JobStatus.CANCELLED for r in result.results[1:])


@pytest.mark.asyncio
async def test_failures_do_not_stop_siblings():
    """Without short-circuit every job runs even if some fail."""
    fetcher = MockFetcher(
        responses={
            "https://bad.example/": INVALID_KEY_RESPONSE,
            "https://down.example/": MockResponse(error=ConnectionError("connection refused")),
        }
    )
    jobs = ["https://bad.example/", "https://ok.example/", "https://down.example/"]

    result = await make_runner(fetcher, max_concurrency=1).run(jobs, new_api_key("k"))

    assert fetcher.call_count == 3
    assert [r.status for r in result] == [JobStatus.FAILED, JobStatus.SUCCEEDED, JobStatus.FAILED]


@pytest.mark.asyncio
async def test_transport_error_is_wrapped():
    fetcher = MockFetcher(default=MockResponse(error=ConnectionError("connection refused")))

    result = await make_runner(fetcher).run(["https://down.example/"], None)

    err = result[0].errs()[0]
    assert isinstance(err, TransportError)
    assert err.url == "https://down.example/"
    assert isinstance(err.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_decode_error_is_recorded():
    fetcher = MockFetcher(default=MockResponse(status_code=200, body=b"<html></html>"))

    result = await make_runner(fetcher).run(["https://example.com/"], None)

    assert isinstance(result[0].error, DecodeError)
    assert result[0].status is JobStatus.FAILED


@pytest.mark.asyncio
async def test_timeout_per_job():
    fetcher = MockFetcher(latency=1.0)

    result = await make_runner(fetcher, timeout_per_job=0.05).run(["https://slow.example/"], None)

    assert isinstance(result[0].error, JobTimeoutError)
    assert isinstance(result[0].error, TransportError)


@pytest.mark.asyncio
async def test_warnings_kept_with_payload():
    """Warnings don't prevent success and are all retrievable."""
    fetcher = MockFetcher(
        default=MockResponse(body=lighthouse_body(run_warnings=["Slow page", "Redirected"]))
    )

    result = await make_runner(fetcher).run(["https://example.com/"], None)

    job_result = result[0]
    assert job_result.status is JobStatus.WARNED
    assert job_result.payload is not None
    assert [str(w.message) for w in job_result.errs()] == ["Slow page", "Redirected"]
    assert all(isinstance(w, RunWarning) for w in job_result.errs())
    assert result.warned == 1


@pytest.mark.asyncio
async def test_runtime_error_then_warnings():
    fetcher = MockFetcher(
        default=MockResponse(
            body=lighthouse_body(
                runtime_error={"code": "NO_FCP", "message": "No content painted."},
                run_warnings=["Slow page"],
            )
        )
    )

    result = await make_runner(fetcher).run(["https://example.com/"], None)

    errs = result[0].errs()
    assert isinstance(errs[0], CompositeError)
    assert isinstance(errs[1], RunWarning)
    assert result[0].status is JobStatus.FAILED


@pytest.mark.asyncio
async def test_credential_errors_are_propagated():
    """A failing credential fails each job without calling the service."""

    class FailingCredential(Credential):
        def token(self) -> str:
            raise CredentialError("secret store unavailable")

    fetcher = MockFetcher()

    result = await make_runner(fetcher).run(["https://a.example/", "https://b.example/"], FailingCredential())

    assert fetcher.call_count == 0
    for job_result in result:
        assert isinstance(job_result.error, CredentialError)
        assert job_result.error.url == job_result.url


@pytest.mark.asyncio
async def test_credential_shared_across_jobs():
    """Round-robin state belongs to the credential, not to each job."""
    fetcher = MockFetcher()
    jobs = [f"https://site{i}.example/" for i in range(6)]

    await make_runner(fetcher, max_concurrency=1).run(jobs, rotating_api_keys("a", "b", "c"))

    assert fetcher.keys_used() == ["a", "b", "c", "a", "b", "c"]


@pytest.mark.asyncio
async def test_job_params_sent():
    from pagespeed_batch import CATEGORY_SEO, STRATEGY_MOBILE

    fetcher = MockFetcher()

    await make_runner(fetcher).run([Job(url="https://a.example/", params=(CATEGORY_SEO, STRATEGY_MOBILE))], None)

    assert "category=SEO" in fetcher.requests[0]
    assert "strategy=mobile" in fetcher.requests[0]


@pytest.mark.asyncio
async def test_runner_reusable_across_batches():
    """Each run() gets its own gate; nothing leaks between batches."""
    fetcher = MockFetcher()
    runner = make_runner(fetcher, max_concurrency=2)

    cancel = asyncio.Event()
    cancel.set()
    first = await runner.run(["https://a.example/"], None, cancel)
    second = await runner.run(["https://a.example/"], None)

    assert first.cancelled == 1
    assert second.succeeded == 1


@pytest.mark.asyncio
async def test_runner_closes_own_client():
    async with ConcurrentBatchRunner(max_concurrency=2) as runner:
        assert runner.client is not None
    # Closing an unused httpx-backed client is a no-op
    await runner.close()


@pytest.mark.asyncio
async def test_run_concurrent_rejects_zero_concurrency():
    fetcher = MockFetcher()

    with pytest.raises(ValueError, match="max_concurrency"):
        await run_concurrent([f"https://site{i}.example/" for i in range(10)], None, 0, fetcher=fetcher)

    assert fetcher.call_count == 0


@pytest.mark.asyncio
async def test_run_concurrent_does_not_modify_config():
    config = RunnerConfig(max_concurrency=3)

    await run_concurrent(["https://a.example/"], None, 1, fetcher=MockFetcher(), config=config)

    assert config.max_concurrency == 3
