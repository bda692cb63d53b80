"""Single-sample forward pass that records every layer's output."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, Sequence

import numpy as np

from .activations import get_activation
from .errors import NotReady, NumericInstability, ShapeMismatch
from .types import Activation, ActivationSnapshot, Array, Topology

logger = logging.getLogger(__name__)


class PredictorLayer(Protocol):
    def __call__(self, inputs: Array) -> Array:
        """Return the layer output for a ``[batch, in_dim]`` input."""


class Predictor(Protocol):
    """Opaque model handle consumed by :func:`forward_pass`.

    ``layers`` are applied in order.  Non-terminal layers return their linear
    output; the terminal layer already applies ``output_activation``.
    """

    @property
    def layers(self) -> Sequence[PredictorLayer]:
        ...

    @property
    def input_dim(self) -> int:
        ...


def select_sample(
    sample_count: int,
    sample_index: int | None = None,
    rng: np.random.Generator | None = None,
) -> int:
    """Pick the row to evaluate.

    A pinned ``sample_index`` is returned after a bounds check, otherwise a row
    is drawn uniformly from ``rng`` (a fresh unseeded generator by default).
    """

    if sample_count <= 0:
        raise NotReady("dataset has no samples")
    if sample_index is not None:
        if not 0 <= sample_index < sample_count:
            raise IndexError(f"sample_index {sample_index} out of range for {sample_count} samples")
        return int(sample_index)
    generator = rng if rng is not None else np.random.default_rng()
    return int(generator.integers(0, sample_count))


def _ensure_finite(values: Array, layer_index: int) -> None:
    if not np.all(np.isfinite(values)):
        bad = int(np.count_nonzero(~np.isfinite(values)))
        raise NumericInstability(f"layer {layer_index} produced {bad} non-finite value(s)")


def forward_vector(
    predictor: Predictor | None,
    vector: Array | None,
    activation: Activation | str,
    *,
    sample_index: int | None = None,
) -> ActivationSnapshot:
    """Run one feature vector through ``predictor``."""

    if predictor is None:
        raise NotReady("no predictor has been built")
    if vector is None:
        raise NotReady("no sample is available")
    x = np.asarray(vector, dtype=np.float32).reshape(1, -1)
    if x.shape[1] != predictor.input_dim:
        raise ShapeMismatch(
            f"sample has {x.shape[1]} features but the predictor expects {predictor.input_dim}"
        )
    act: Callable[[Array], Array] = get_activation(activation)
    layers = list(predictor.layers)
    outputs = []
    for index, layer in enumerate(layers):
        x = layer(x)
        if index < len(layers) - 1:
            x = act(x)
        values = np.array(x[0], dtype=np.float64, copy=True)
        _ensure_finite(values, index)
        values.setflags(write=False)
        outputs.append(values)
    return ActivationSnapshot(layers=tuple(outputs), sample_index=sample_index)


def forward_pass(
    predictor: Predictor | None,
    features: Array | None,
    activation: Activation | str,
    *,
    sample_index: int | None = None,
    rng: np.random.Generator | None = None,
) -> ActivationSnapshot:
    """Evaluate one row of ``features`` and capture each layer's activations.

    Raises :class:`NotReady` when there is no predictor or no data and
    :class:`NumericInstability` when any captured value is not finite.
    """

    if predictor is None:
        raise NotReady("no predictor has been built")
    if features is None or len(features) == 0:
        raise NotReady("no dataset has been loaded")
    index = select_sample(len(features), sample_index, rng)
    logger.debug("Forward pass on sample %d", index)
    return forward_vector(predictor, features[index], activation, sample_index=index)


def check_snapshot(snapshot: ActivationSnapshot, topology: Topology) -> None:
    """Raise :class:`ShapeMismatch` unless ``snapshot`` matches ``topology``."""

    expected = topology.layer_sizes
    actual = snapshot.layer_sizes
    if len(actual) != len(expected):
        raise ShapeMismatch(f"snapshot has {len(actual)} layers, topology has {len(expected)}")
    for index, (got, want) in enumerate(zip(actual, expected)):
        if got != want:
            raise ShapeMismatch(f"layer {index} has {got} activations, topology expects {want}")


__all__ = [
    "Predictor",
    "PredictorLayer",
    "check_snapshot",
    "forward_pass",
    "forward_vector",
    "select_sample",
]
