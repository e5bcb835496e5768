"""Metrics collection observer."""

import asyncio
import json
from typing import Any

from .base import BaseObserver, ProcessingEvent


class MetricsObserver(BaseObserver):
    """Collect batch metrics for monitoring (thread-safe)."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = {
            "jobs_processed": 0,
            "jobs_succeeded": 0,
            "jobs_failed": 0,
            "jobs_cancelled": 0,
            "warnings_received": 0,
            "short_circuits": 0,
            "processing_times": [],
            "error_counts": {},
        }
        self._lock = asyncio.Lock()

    async def on_event(
        self,
        event: ProcessingEvent,
        data: dict[str, Any],
    ) -> None:
        """Collect metrics from events (thread-safe)."""
        async with self._lock:
            if event == ProcessingEvent.JOB_SUCCEEDED:
                self.metrics["jobs_processed"] += 1
                self.metrics["jobs_succeeded"] += 1
                self.metrics["warnings_received"] += data.get("warnings", 0)
                if "duration" in data:
                    self.metrics["processing_times"].append(data["duration"])

            elif event == ProcessingEvent.JOB_FAILED:
                self.metrics["jobs_processed"] += 1
                self.metrics["jobs_failed"] += 1
                self.metrics["warnings_received"] += data.get("warnings", 0)
                if "duration" in data:
                    self.metrics["processing_times"].append(data["duration"])
                if "error_category" in data:
                    category = data["error_category"]
                    self.metrics["error_counts"][category] = (
                        self.metrics["error_counts"].get(category, 0) + 1
                    )

            elif event == ProcessingEvent.JOB_CANCELLED:
                self.metrics["jobs_cancelled"] += 1

            elif event == ProcessingEvent.SHORT_CIRCUIT:
                self.metrics["short_circuits"] += 1

    async def get_metrics(self) -> dict[str, Any]:
        """Get collected metrics with computed statistics (thread-safe)."""
        async with self._lock:
            processing_times = self.metrics["processing_times"]
            return {
                **self.metrics,
                "processing_times": list(processing_times),
                "error_counts": dict(self.metrics["error_counts"]),
                "avg_processing_time": (
                    sum(processing_times) / len(processing_times) if processing_times else 0
                ),
                "success_rate": (
                    self.metrics["jobs_succeeded"] / self.metrics["jobs_processed"]
                    if self.metrics["jobs_processed"] > 0
                    else 0
                ),
            }

    def reset(self) -> None:
        """Reset all metrics."""
        self.__init__()

    async def export_json(self) -> str:
        """Export metrics as JSON string.

        Returns:
            JSON string containing all metrics and computed statistics
        """
        metrics = await self.get_metrics()
        export_data = {
            **metrics,
            "processing_times_count": len(metrics.get("processing_times", [])),
        }
        # Remove the full list to keep export clean
        export_data.pop("processing_times", None)
        return json.dumps(export_data, indent=2)

    async def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format.

        Example:
            >>> prom_text = await observer.export_prometheus()
            >>> print(prom_text)
            # HELP pagespeed_batch_jobs_processed Total jobs processed
            # TYPE pagespeed_batch_jobs_processed counter
            pagespeed_batch_jobs_processed 100
            ...
        """
        metrics = await self.get_metrics()

        lines = []

        counters = [
            ("jobs_processed", "Total jobs processed"),
            ("jobs_succeeded", "Total jobs succeeded"),
            ("jobs_failed", "Total jobs failed"),
            ("jobs_cancelled", "Total jobs cancelled before admission"),
            ("warnings_received", "Total run warnings received"),
            ("short_circuits", "Total batches short-circuited"),
        ]

        for metric_name, help_text in counters:
            lines.append(f"# HELP pagespeed_batch_{metric_name} {help_text}")
            lines.append(f"# TYPE pagespeed_batch_{metric_name} counter")
            lines.append(f"pagespeed_batch_{metric_name} {metrics.get(metric_name, 0)}")
            lines.append("")

        gauges = [
            ("avg_processing_time", "Average job processing time in seconds"),
            ("success_rate", "Success rate (0.0 to 1.0)"),
        ]

        for metric_name, help_text in gauges:
            lines.append(f"# HELP pagespeed_batch_{metric_name} {help_text}")
            lines.append(f"# TYPE pagespeed_batch_{metric_name} gauge")
            lines.append(f"pagespeed_batch_{metric_name} {metrics.get(metric_name, 0)}")
            lines.append("")

        error_counts = metrics.get("error_counts", {})
        if error_counts:
            lines.append("# HELP pagespeed_batch_errors_total Total errors by category")
            lines.append("# TYPE pagespeed_batch_errors_total counter")
            for category, count in error_counts.items():
                safe_category = category.replace('"', '\\"')
                lines.append(f'pagespeed_batch_errors_total{{category="{safe_category}"}} {count}')
            lines.append("")

        return "\n".join(lines)

    async def export_dict(self) -> dict[str, Any]:
        """Export metrics as a dictionary."""
        return await self.get_metrics()
