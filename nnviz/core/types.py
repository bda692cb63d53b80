"""Core typing contracts for nnviz."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np

from .errors import ShapeMismatch

Array = np.ndarray


class Activation(str, Enum):
    """Elementwise activations applied after hidden layers."""

    RELU = "relu"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    SOFTMAX = "softmax"


# Hidden activations a user may pick; softmax is reserved for the output layer.
HIDDEN_ACTIVATIONS = (Activation.RELU, Activation.SIGMOID, Activation.TANH)
OUTPUT_ACTIVATION = Activation.SOFTMAX


class Optimizer(str, Enum):
    SGD = "sgd"
    ADAM = "adam"
    RMSPROP = "rmsprop"


class LossFunction(str, Enum):
    CATEGORICAL_CROSSENTROPY = "categoricalCrossentropy"
    MEAN_SQUARED_ERROR = "meanSquaredError"
    BINARY_CROSSENTROPY = "binaryCrossentropy"


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True)
class NetworkConfig:
    """Canonical hyperparameter record.

    ``neurons_per_layer`` always has ``layer_count`` entries; the
    :class:`~nnviz.core.config.ConfigStateManager` is the only writer and keeps
    the two in step.
    """

    layer_count: int = 3
    neurons_per_layer: Tuple[int, ...] = (4, 5, 3)
    activation: Activation = Activation.RELU
    learning_rate: float = 0.01
    epochs: int = 50
    batch_size: int = 32
    optimizer: Optimizer = Optimizer.ADAM
    loss_function: LossFunction = LossFunction.CATEGORICAL_CROSSENTROPY
    validation_split: float = 0.2


@dataclass(frozen=True, eq=False)
class Dataset:
    """Immutable snapshot of loaded training data.

    Attributes
    ----------
    features:
        Float matrix of shape ``[sample_count, feature_count]``.
    labels:
        Float matrix of shape ``[sample_count, class_count]`` (one-hot for
        classification data).
    feature_means, feature_stds:
        Per-feature statistics used to standardise ``features``.
    """

    name: str
    features: Array
    labels: Array
    feature_means: Array = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    feature_stds: Array = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    feature_names: Tuple[str, ...] = ()
    label_names: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        features = np.array(self.features, dtype=np.float32, copy=True)
        labels = np.array(self.labels, dtype=np.float32, copy=True)
        if features.ndim != 2 or labels.ndim != 2:
            raise ShapeMismatch(
                f"features and labels must be 2D, got {features.shape} and {labels.shape}"
            )
        if features.shape[0] != labels.shape[0]:
            raise ShapeMismatch(
                f"features have {features.shape[0]} rows but labels have {labels.shape[0]}"
            )
        features.setflags(write=False)
        labels.setflags(write=False)
        object.__setattr__(self, "features", features)
        object.__setattr__(self, "labels", labels)

    @property
    def sample_count(self) -> int:
        return int(self.features.shape[0])

    @property
    def input_shape(self) -> Tuple[int]:
        return (int(self.features.shape[1]),)

    @property
    def output_shape(self) -> Tuple[int]:
        return (int(self.labels.shape[1]),)

    def describe(self) -> str:
        return f"{self.sample_count} samples, {self.input_shape[0]} features"


@dataclass(frozen=True)
class Layer:
    neuron_count: int
    activation: Activation


@dataclass(frozen=True)
class Topology:
    """Render-ready layer structure derived from config and dataset."""

    layers: Tuple[Layer, ...]

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    @property
    def layer_sizes(self) -> List[int]:
        return [layer.neuron_count for layer in self.layers]

    @property
    def neuron_total(self) -> int:
        return sum(self.layer_sizes)

    @property
    def connection_total(self) -> int:
        sizes = self.layer_sizes
        return sum(a * b for a, b in zip(sizes[:-1], sizes[1:]))


@dataclass(frozen=True)
class NeuronPosition:
    x: float
    y: float
    layer_index: int
    neuron_index: int


@dataclass(frozen=True)
class Connection:
    source: NeuronPosition
    target: NeuronPosition


@dataclass(frozen=True)
class Layout:
    """Neuron coordinates per layer plus the derived connection set."""

    positions: Tuple[Tuple[NeuronPosition, ...], ...]
    connections: Tuple[Connection, ...]

    def flat_positions(self) -> List[NeuronPosition]:
        return [pos for layer in self.positions for pos in layer]


@dataclass(frozen=True, eq=False)
class ActivationSnapshot:
    """Per-layer output vectors captured by one forward pass."""

    layers: Tuple[Array, ...]
    sample_index: int | None = None

    @property
    def layer_sizes(self) -> List[int]:
        return [int(values.shape[0]) for values in self.layers]

    def as_lists(self) -> List[List[float]]:
        return [[float(v) for v in values] for values in self.layers]


@dataclass(frozen=True)
class TimedStep:
    """One scheduled visual update, offset from the start of the plan."""

    at_ms: int
    layer_index: int
    neuron_index: int
    value: float
    radius: float
    color_mix: float
    duration_ms: int


@dataclass(frozen=True)
class EpochMetrics:
    epoch: int
    loss: float
    accuracy: float
    val_loss: float | None = None
    val_accuracy: float | None = None

    def as_dict(self) -> dict:
        record = {"epoch": self.epoch, "loss": self.loss, "accuracy": self.accuracy}
        if self.val_loss is not None:
            record["val_loss"] = self.val_loss
        if self.val_accuracy is not None:
            record["val_accuracy"] = self.val_accuracy
        return record


__all__ = [
    "Activation",
    "ActivationSnapshot",
    "Array",
    "Connection",
    "Dataset",
    "Direction",
    "EpochMetrics",
    "HIDDEN_ACTIVATIONS",
    "Layer",
    "Layout",
    "LossFunction",
    "NetworkConfig",
    "NeuronPosition",
    "OUTPUT_ACTIVATION",
    "Optimizer",
    "TimedStep",
    "Topology",
]
