"""Tests for observers and progress callbacks."""

import json

import pytest

from pagespeed_batch import (
    ERR_INVALID_KEY,
    BaseObserver,
    ConcurrentBatchRunner,
    MetricsObserver,
    PageSpeedClient,
    ProcessingEvent,
    RunnerConfig,
)
from pagespeed_batch.testing import MockFetcher, MockResponse, error_body, lighthouse_body

INVALID_KEY_RESPONSE = MockResponse(
    status_code=400,
    body=error_body(400, ERR_INVALID_KEY.message, [ERR_INVALID_KEY.as_record()]),
)


class RecordingObserver(BaseObserver):
    def __init__(self):
        self.events: list[tuple[ProcessingEvent, dict]] = []

    async def on_event(self, event, data):
        self.events.append((event, data))

    def names(self) -> list[ProcessingEvent]:
        return [event for event, _ in self.events]


class FailingObserver(BaseObserver):
    async def on_event(self, event, data):
        raise RuntimeError("observer exploded")


def make_runner(fetcher, observers=None, progress_callback=None, **config_kwargs):
    return ConcurrentBatchRunner(
        config=RunnerConfig(**config_kwargs),
        client=PageSpeedClient(fetcher=fetcher),
        observers=observers,
        progress_callback=progress_callback,
    )


@pytest.mark.asyncio
async def test_metrics_observer_counts():
    fetcher = MockFetcher(
        responses={
            "https://bad.example/": INVALID_KEY_RESPONSE,
            "https://warn.example/": MockResponse(
                body=lighthouse_body(requested_url="https://warn.example/", run_warnings=["Slow"])
            ),
        }
    )
    metrics = MetricsObserver()

    await make_runner(fetcher, observers=[metrics]).run(
        ["https://ok.example/", "https://bad.example/", "https://warn.example/"], None
    )

    collected = await metrics.get_metrics()
    assert collected["jobs_processed"] == 3
    assert collected["jobs_succeeded"] == 2
    assert collected["jobs_failed"] == 1
    assert collected["jobs_cancelled"] == 0
    assert collected["warnings_received"] == 1
    assert collected["error_counts"] == {"invalid_key": 1}
    assert collected["success_rate"] == pytest.approx(2 / 3)
    assert len(collected["processing_times"]) == 3


@pytest.mark.asyncio
async def test_metrics_observer_exports():
    metrics = MetricsObserver()
    await metrics.on_event(
        ProcessingEvent.JOB_FAILED, {"duration": 1.0, "error_category": "rate_limit_exceeded"}
    )
    await metrics.on_event(ProcessingEvent.JOB_SUCCEEDED, {"duration": 3.0})

    prometheus = await metrics.export_prometheus()
    assert "pagespeed_batch_jobs_processed 2" in prometheus
    assert 'pagespeed_batch_errors_total{category="rate_limit_exceeded"} 1' in prometheus

    exported = json.loads(await metrics.export_json())
    assert exported["avg_processing_time"] == 2.0
    assert exported["processing_times_count"] == 2
    assert "processing_times" not in exported

    metrics.reset()
    assert (await metrics.export_dict())["jobs_processed"] == 0


@pytest.mark.asyncio
async def test_event_sequence_with_short_circuit():
    fetcher = MockFetcher(default=INVALID_KEY_RESPONSE)
    recorder = RecordingObserver()
    metrics = MetricsObserver()

    await make_runner(
        fetcher,
        observers=[recorder, metrics],
        max_concurrency=1,
        short_circuit_on=("invalid_key",),
    ).run(["https://a.example/", "https://b.example/", "https://c.example/"], None)

    names = recorder.names()
    assert names[0] is ProcessingEvent.BATCH_STARTED
    assert names[-1] is ProcessingEvent.BATCH_COMPLETED
    assert names.count(ProcessingEvent.JOB_STARTED) == 1
    assert names.count(ProcessingEvent.JOB_FAILED) == 1
    assert names.count(ProcessingEvent.SHORT_CIRCUIT) == 1
    assert names.count(ProcessingEvent.JOB_CANCELLED) == 2

    completed = recorder.events[-1][1]
    assert completed["failed"] == 1
    assert completed["cancelled"] == 2

    collected = await metrics.get_metrics()
    assert collected["short_circuits"] == 1
    assert collected["jobs_cancelled"] == 2


@pytest.mark.asyncio
async def test_failing_observer_does_not_break_batch():
    fetcher = MockFetcher()

    result = await make_runner(fetcher, observers=[FailingObserver()]).run(
        ["https://a.example/", "https://b.example/"], None
    )

    assert result.succeeded == 2


@pytest.mark.asyncio
async def test_progress_callback_sync():
    calls = []

    def on_progress(completed, total, current_url):
        calls.append((completed, total))

    await make_runner(MockFetcher(), progress_callback=on_progress, progress_interval=2).run(
        [f"https://site{i}.example/" for i in range(5)], None
    )

    assert calls == [(2, 5), (4, 5), (5, 5)]


@pytest.mark.asyncio
async def test_progress_callback_async():
    calls = []

    async def on_progress(completed, total, current_url):
        calls.append(current_url)

    await make_runner(MockFetcher(), progress_callback=on_progress, progress_interval=1).run(
        ["https://a.example/", "https://b.example/"], None
    )

    assert sorted(calls) == ["https://a.example/", "https://b.example/"]


@pytest.mark.asyncio
async def test_failing_progress_callback_is_logged(caplog):
    def on_progress(completed, total, current_url):
        raise ValueError("bad callback")

    result = await make_runner(MockFetcher(), progress_callback=on_progress).run(
        ["https://a.example/"], None
    )

    assert result.succeeded == 1
    assert "Progress callback failed" in caplog.text
