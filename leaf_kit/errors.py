"""
Exception hierarchy for leaf_kit.

Every failure the pipeline surfaces to a caller derives from `LeafKitError`, so a
UI layer can tell "the attempt failed" apart from "the attempt found nothing".
"""

from __future__ import annotations


class LeafKitError(Exception):
    """Base class for all leaf_kit errors."""


class DecodeError(LeafKitError):
    """Raised when image bytes are empty, malformed, truncated or unsupported."""


class ShapeMismatchError(LeafKitError, ValueError):
    """Raised when pixel buffer dimensions do not match what a stage expects."""


class ModelLoadError(LeafKitError, RuntimeError):
    """Raised when a model artifact is missing, corrupt or its runtime is unavailable."""


class InferenceError(LeafKitError, RuntimeError):
    """Raised when the inference runtime fails while executing the model."""


class OutputFormatError(LeafKitError, ValueError):
    """Raised when model output is missing, empty or matches no supported layout."""


class SessionError(LeafKitError):
    """Base class for DetectionSession misuse."""


class SessionBusyError(SessionError):
    """Raised when a detection is requested while another one is still in flight."""


class NoImageError(SessionError):
    """Raised when a detection is requested before any image was registered."""
