"""Testing utilities for pagespeed_batch."""

from .mocks import MockFetcher, MockResponse, error_body, lighthouse_body

__all__ = ["MockFetcher", "MockResponse", "error_body", "lighthouse_body"]
