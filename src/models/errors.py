"""
Error taxonomy for the detection pipeline.

Everything below PipelineError is raised inside a single pipeline step and
converted into a DetectionResult at the service boundary; none of these
reach the scheduler.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for detection pipeline errors."""


class ModelLoadError(PipelineError):
    """The model could not be loaded. Fatal to local inference only."""


class PreprocessError(PipelineError):
    """The frame could not be turned into an input tensor."""


class InferenceError(PipelineError):
    """A forward pass failed. Recoverable; the cycle is abandoned."""


class ModelNotLoaded(InferenceError):
    """Inference was requested while the engine is not ready."""


class InferenceCancelled(InferenceError):
    """The forward pass was terminated through its cancellation token."""


class DecodeAnomaly(PipelineError):
    """Raw output did not have the expected shape or contained non-finite values."""


class NetworkError(PipelineError):
    """Transport failure talking to the remote detection endpoint."""


class ParseError(PipelineError):
    """The remote endpoint answered with a body that is not a detection result."""


class CaptureUnavailable(PipelineError):
    """No frame was available. Expected and transient."""
