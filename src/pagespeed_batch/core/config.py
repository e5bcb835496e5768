"""Configuration management for the client and batch runner."""

from dataclasses import dataclass

from ..request import DEFAULT_ENDPOINT


@dataclass
class ClientConfig:
    """Configuration for talking to the PageSpeed API."""

    endpoint: str = DEFAULT_ENDPOINT
    http_timeout: float = 120.0  # Lighthouse runs commonly take 10-60s
    user_agent: str = "pagespeed-batch/0.1.0"
    follow_redirects: bool = True

    def validate(self) -> None:
        """Validate client configuration."""
        if not self.endpoint.startswith(("http://", "https://")):
            raise ValueError(
                f"endpoint must be an http(s) URL (got {self.endpoint!r}). "
                f"Leave client.endpoint unset to use the public runPagespeed endpoint."
            )
        if self.http_timeout <= 0:
            raise ValueError(
                f"http_timeout must be > 0 (got {self.http_timeout}). "
                f"Set client.http_timeout to a positive number in seconds (typical: 60-180)."
            )


@dataclass
class RunnerConfig:
    """Complete configuration for the concurrent batch runner."""

    max_concurrency: int = 5
    timeout_per_job: float | None = 120.0  # None = no framework timeout

    # Signature names that cancel the rest of the batch when a job fails with them
    short_circuit_on: tuple[str, ...] = ()

    # Progress reporting
    progress_interval: int = 10  # Log every N jobs

    # Observability
    enable_detailed_logging: bool = False

    def validate(self) -> None:
        """Validate complete configuration."""
        if self.max_concurrency < 1:
            raise ValueError(
                f"max_concurrency must be >= 1 (got {self.max_concurrency}). "
                f"Set config.max_concurrency to a positive integer (typical: 2-10)."
            )
        if self.timeout_per_job is not None and self.timeout_per_job <= 0:
            raise ValueError(
                f"timeout_per_job must be > 0 (got {self.timeout_per_job}). "
                f"Set config.timeout_per_job to a positive number in seconds, or None to disable it."
            )
        if self.progress_interval < 1:
            raise ValueError(
                f"progress_interval must be >= 1 (got {self.progress_interval}). "
                f"Set config.progress_interval to a positive integer."
            )