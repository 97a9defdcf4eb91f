"""User interaction helpers."""

from .progress import ProgressCounters, ProgressReporter

__all__ = ["ProgressCounters", "ProgressReporter"]
