"""Loss registry used by the training loop.

Every loss takes the network's output (after its output activation) and the
targets, and returns the scalar loss together with ``dL/d(output)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.types import Array, LossFunction

LossFn = Callable[[Array, Array], tuple[float, Array]]

_EPS = 1e-7


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the scalar loss and dL/dy."""

    name: str
    fn: LossFn

    def __call__(self, predictions: Array, targets: Array) -> tuple[float, Array]:
        return self.fn(predictions, targets)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn) -> None:
        self._registry[name] = Loss(name, fn)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def get(self, name: LossFunction | str) -> Loss:
        key = getattr(name, "value", name)
        if key not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {key!r}. Available losses: {available}")
        return self._registry[key]


REGISTRY = LossRegistry()


def _mse(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    loss = float(np.mean(np.square(diff)))
    return loss, 2.0 * diff / diff.size


def _categorical_crossentropy(probs: Array, target: Array) -> tuple[float, Array]:
    clipped = np.clip(probs, _EPS, 1.0 - _EPS)
    n = probs.shape[0]
    loss = float(-np.mean(np.sum(target * np.log(clipped), axis=1)))
    grad = -target / clipped / n
    return loss, grad


def _binary_crossentropy(probs: Array, target: Array) -> tuple[float, Array]:
    clipped = np.clip(probs, _EPS, 1.0 - _EPS)
    loss = float(
        -np.mean(target * np.log(clipped) + (1.0 - target) * np.log(1.0 - clipped))
    )
    grad = (clipped - target) / (clipped * (1.0 - clipped)) / probs.size
    return loss, grad


REGISTRY.register(LossFunction.MEAN_SQUARED_ERROR.value, _mse)
REGISTRY.register(LossFunction.CATEGORICAL_CROSSENTROPY.value, _categorical_crossentropy)
REGISTRY.register(LossFunction.BINARY_CROSSENTROPY.value, _binary_crossentropy)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
