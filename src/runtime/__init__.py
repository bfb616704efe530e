"""
Runtime wiring: cancellation, service context and the detection scheduler.

The scheduler is imported from runtime.scheduler directly; it depends on the
detection and inference packages, which in turn depend on runtime.cancellation.
"""

from .cancellation import CancellationToken

__all__ = ["CancellationToken"]
