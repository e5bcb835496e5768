"""Core components for batch analysis."""

from .config import ClientConfig, RunnerConfig
from .protocols import FetcherLike, ResponseDecoder

__all__ = [
    "ClientConfig",
    "RunnerConfig",
    "FetcherLike",
    "ResponseDecoder",
]
