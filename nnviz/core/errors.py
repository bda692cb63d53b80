"""Exception hierarchy shared by every nnviz component."""

from __future__ import annotations


class NNVizError(Exception):
    """Base class for all nnviz failures."""


class ValidationError(NNVizError, ValueError):
    """A hyperparameter value is outside its legal range."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ShapeMismatch(NNVizError, ValueError):
    """Topology, activations and dataset disagree on a dimension."""


class NotReady(NNVizError):
    """No predictor or dataset is available yet."""


class NumericInstability(NNVizError):
    """A non-finite activation or loss was produced."""


class TrainingFailed(NNVizError):
    """The training engine failed; ``reason`` is shown to the user."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class TrainingCancelled(NNVizError):
    """Training was cancelled before it completed."""


class InvalidDimensions(NNVizError, ValueError):
    """Viewport width or height is not a positive finite number."""


class InvalidTopology(NNVizError, ValueError):
    """The topology has no layers."""


class EmptyTrace(NNVizError):
    """An animation plan was requested for a trace with no layers."""


class UnsupportedFormat(NNVizError):
    """The dataset file type is not supported."""


class EmptyOrMalformed(NNVizError):
    """The dataset text is empty or cannot be parsed into features and labels."""


class SizeLimitExceeded(NNVizError):
    """The dataset file exceeds the ingestion size cap."""


__all__ = [
    "EmptyOrMalformed",
    "EmptyTrace",
    "InvalidDimensions",
    "InvalidTopology",
    "NNVizError",
    "NotReady",
    "NumericInstability",
    "ShapeMismatch",
    "SizeLimitExceeded",
    "TrainingCancelled",
    "TrainingFailed",
    "UnsupportedFormat",
    "ValidationError",
]
