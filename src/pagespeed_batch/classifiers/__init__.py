"""Error classifiers."""

from .base import DefaultErrorClassifier, ErrorClassifier, ErrorInfo
from .pagespeed import PageSpeedErrorClassifier

__all__ = [
    "ErrorClassifier",
    "ErrorInfo",
    "DefaultErrorClassifier",
    "PageSpeedErrorClassifier",
]
