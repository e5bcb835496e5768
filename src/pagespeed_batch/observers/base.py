"""Observer system for runner events."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class ProcessingEvent(Enum):
    """Events that can be observed while a batch runs."""

    BATCH_STARTED = "batch_started"
    BATCH_COMPLETED = "batch_completed"
    JOB_STARTED = "job_started"
    JOB_SUCCEEDED = "job_succeeded"
    JOB_FAILED = "job_failed"
    JOB_CANCELLED = "job_cancelled"
    SHORT_CIRCUIT = "short_circuit"


class RunnerObserver(ABC):
    """Abstract base class for runner event observers."""

    @abstractmethod
    async def on_event(
        self,
        event: ProcessingEvent,
        data: dict[str, Any],
    ) -> None:
        """
        Handle runner event.

        Args:
            event: The event type
            data: Event-specific data
        """
        pass


class BaseObserver(RunnerObserver):
    """Base observer with no-op implementation."""

    async def on_event(
        self,
        event: ProcessingEvent,
        data: dict[str, Any],
    ) -> None:
        """Default: do nothing."""
        pass
