"""Activation utilities for nnviz."""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from .types import Activation, Array


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def sigmoid(x: Array) -> Array:
    # Clipped so large negative inputs do not overflow np.exp.
    return 1.0 / (1.0 + np.exp(-np.clip(x, -500.0, 500.0)))


def tanh(x: Array) -> Array:
    return np.tanh(x)


def softmax(z: Array) -> Array:
    """Row-wise softmax; 1D inputs are treated as a single row."""

    squeeze = z.ndim == 1
    if squeeze:
        z = z.reshape(1, -1)
    shifted = z - z.max(axis=1, keepdims=True)
    e = np.exp(shifted)
    out = e / e.sum(axis=1, keepdims=True)
    return out[0] if squeeze else out


def relu_deriv(z: Array, out: Array) -> Array:
    return (z > 0).astype(z.dtype)


def sigmoid_deriv(z: Array, out: Array) -> Array:
    return out * (1.0 - out)


def tanh_deriv(z: Array, out: Array) -> Array:
    return 1.0 - out**2


ACTIVATIONS: Dict[Activation, Callable[[Array], Array]] = {
    Activation.RELU: relu,
    Activation.SIGMOID: sigmoid,
    Activation.TANH: tanh,
    Activation.SOFTMAX: softmax,
}

# Derivatives take the pre-activation and the activated output.
DERIVATIVES: Dict[Activation, Callable[[Array, Array], Array]] = {
    Activation.RELU: relu_deriv,
    Activation.SIGMOID: sigmoid_deriv,
    Activation.TANH: tanh_deriv,
}


def get_activation(name: Activation | str) -> Callable[[Array], Array]:
    try:
        return ACTIVATIONS[Activation(name)]
    except ValueError as exc:
        raise KeyError(f"Unknown activation: {name}") from exc


def apply_activation(name: Activation | str, x: Array) -> Array:
    return get_activation(name)(x)


__all__ = [
    "ACTIVATIONS",
    "DERIVATIVES",
    "apply_activation",
    "get_activation",
    "relu",
    "sigmoid",
    "softmax",
    "tanh",
]
