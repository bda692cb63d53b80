"""Derive a render-ready layer structure from config and dataset shape."""

from __future__ import annotations

import math
from typing import List, Tuple

from .types import OUTPUT_ACTIVATION, Dataset, Layer, NetworkConfig, Topology


def _fit_counts(counts, layer_count: int) -> List[int]:
    layer_count = max(1, int(layer_count))
    sized = [max(1, int(n)) for n in list(counts)[:layer_count]]
    sized.extend([1] * (layer_count - len(sized)))
    return sized


def resolve(config: NetworkConfig, dataset: Dataset | None = None) -> Topology:
    """Return the :class:`Topology` for ``config`` and an optional ``dataset``.

    The function never fails: counts are padded with ``1``, truncated to
    ``layer_count`` and clamped to at least one neuron.  When a dataset is
    present the first layer takes the feature count and the last layer takes
    the class count with the output activation.  A single-layer network is
    both input and output; the output override wins.
    """

    counts = _fit_counts(config.neurons_per_layer, config.layer_count)
    activations = [config.activation] * len(counts)
    if dataset is not None:
        counts[0] = max(1, dataset.input_shape[0])
        counts[-1] = max(1, dataset.output_shape[0])
        activations[-1] = OUTPUT_ACTIVATION
    return Topology(
        layers=tuple(Layer(neuron_count=n, activation=a) for n, a in zip(counts, activations))
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def recommend_layers(dataset: Dataset) -> Tuple[int, int, int]:
    """Suggest ``[features, round((features + classes) / 2), classes]``."""

    features = dataset.input_shape[0]
    classes = dataset.output_shape[0]
    hidden = max(1, _round_half_up((features + classes) / 2))
    return features, hidden, classes


__all__ = ["recommend_layers", "resolve"]
