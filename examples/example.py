"""Example usage of the pagespeed_batch module.

This demonstrates how to run many PageSpeed analyses concurrently with rotating
API keys, how to recognise well-known service errors, and how to test without
touching the network.
"""

import asyncio
import logging

from pagespeed_batch import (
    CATEGORY_ALL,
    ERR_INVALID_KEY,
    ERR_QUOTA_EXHAUSTED,
    ERR_RATE_LIMIT_EXCEEDED,
    STRATEGY_MOBILE,
    ConcurrentBatchRunner,
    Job,
    MetricsObserver,
    PageSpeedClient,
    RunnerConfig,
    credential_from_env,
    matches,
    run_lighthouse,
)
from pagespeed_batch.testing import MockFetcher, MockResponse, error_body

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)


async def example_single_page():
    """
    Example 1: Analyse one page.
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 1: Single page")
    logging.info("=" * 80)

    # Keys come from PAGESPEED_API_KEYS (comma separated)
    credential = credential_from_env()

    result = await run_lighthouse("https://example.com", credential, STRATEGY_MOBILE, *CATEGORY_ALL)

    logging.info(f"Final URL: {result.final_url.geturl()}")
    for name in result.categories():
        logging.info(f"  {name}: {result.score(name)}")
    logging.info(f"  average: {result.score('average')}")


async def example_batch():
    """
    Example 2: Batch with rotating keys, short-circuit on a bad key, and metrics.
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 2: Concurrent batch")
    logging.info("=" * 80)

    urls = [
        "https://example.com",
        "https://www.python.org",
        "https://docs.python.org/3/",
        "https://pypi.org",
    ]
    jobs = [Job(url=url, params=(STRATEGY_MOBILE,), context={"row": i}) for i, url in enumerate(urls)]

    config = RunnerConfig(
        max_concurrency=2,
        timeout_per_job=180.0,
        # Every other job would fail the same way
        short_circuit_on=(ERR_INVALID_KEY.name,),
    )
    metrics = MetricsObserver()

    async with ConcurrentBatchRunner(config=config, observers=[metrics]) as runner:
        result = await runner.run(jobs, credential_from_env())

    for job_result in result:
        if job_result.success:
            logging.info(f"✓ {job_result.url}: performance {job_result.payload.score('performance')}")
            continue
        for err in job_result.errs():
            if matches(err, ERR_RATE_LIMIT_EXCEEDED) or matches(err, ERR_QUOTA_EXHAUSTED):
                logging.warning(f"⚠️  {job_result.url}: rate limited, try again later")
            else:
                logging.error(f"✗ {err}")

    collected_metrics = await metrics.get_metrics()
    logging.info(f"\nSuccess rate: {collected_metrics['success_rate']*100:.1f}%")


async def example_testing_with_mocks():
    """
    Example 3: Testing with MockFetcher (no real API calls).
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 3: Testing with MockFetcher")
    logging.info("=" * 80)

    # One page fails with the invalid key error, the rest get a Lighthouse result
    fetcher = MockFetcher(
        responses={
            "https://broken.example": MockResponse(
                status_code=400,
                body=error_body(400, ERR_INVALID_KEY.message, [ERR_INVALID_KEY.as_record()]),
            )
        },
        latency=0.05,  # 50ms simulated latency
    )

    runner = ConcurrentBatchRunner(
        config=RunnerConfig(max_concurrency=2),
        client=PageSpeedClient(fetcher=fetcher),
    )
    result = await runner.run(
        ["https://a.example", "https://broken.example", "https://b.example"], None
    )

    logging.info(f"\nProcessed {result.total_jobs} jobs with MockFetcher:")
    logging.info(f"  Succeeded: {result.succeeded}")
    logging.info(f"  Failed: {result.failed}")
    for url, err in result.errors():
        logging.info(f"  {url}: invalid key = {matches(err, ERR_INVALID_KEY)}")
    logging.info(f"  Fetcher calls: {fetcher.call_count}")
    logging.info("\nNote: This test ran without making any real API calls!")


async def main():
    """Run all examples."""
    # Note: Examples 1-2 call the live API; set PAGESPEED_API_KEYS first
    # Example 3 uses MockFetcher and does not need a key

    # Uncomment to run:
    # await example_single_page()
    # await example_batch()

    await example_testing_with_mocks()

    logging.info(
        "\nExamples 1-2 are commented out. Uncomment in main() to run against the live API."
        "\nExample 3 (MockFetcher) is enabled by default and doesn't need an API key."
    )


if __name__ == "__main__":
    asyncio.run(main())
