"""Observers for monitoring runner events."""

from .base import BaseObserver, ProcessingEvent, RunnerObserver
from .metrics import MetricsObserver

__all__ = ["RunnerObserver", "BaseObserver", "ProcessingEvent", "MetricsObserver"]
