"""Numpy feed-forward predictor and its cancellable training loop."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Sequence

import numpy as np

from ..core.activations import DERIVATIVES, apply_activation
from ..core.errors import NumericInstability, ShapeMismatch, TrainingCancelled, TrainingFailed
from ..core.types import Activation, Array, EpochMetrics, NetworkConfig, Optimizer, Topology
from ..data.utils import validation_split_indices
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import Loss
from .metrics import accuracy

logger = logging.getLogger(__name__)

Gradients = Dict[str, Array]
EpochCallback = Callable[[int, EpochMetrics], None]


@dataclass
class DenseLayer:
    """Fully connected layer.

    ``activation`` is only set on the terminal layer; hidden layers return
    their linear output and the caller applies the hidden activation.
    """

    weights: Array
    bias: Array
    activation: Activation | None = None

    def linear(self, inputs: Array) -> Array:
        return inputs @ self.weights + self.bias

    def __call__(self, inputs: Array) -> Array:
        z = self.linear(inputs)
        if self.activation is None:
            return z
        return apply_activation(self.activation, z)


@dataclass
class _Cache:
    inputs: List[Array] = field(default_factory=list)
    pre: List[Array] = field(default_factory=list)
    post: List[Array] = field(default_factory=list)


class FeedForwardModel:
    """Dense network with one layer per :class:`Topology` layer.

    The first layer takes ``input_dim`` inputs (the dataset's feature count,
    or the first layer's own width when no dataset is loaded).
    """

    def __init__(self, topology: Topology, input_dim: int | None = None, seed: int = 0) -> None:
        if not topology.layers:
            raise ShapeMismatch("cannot build a model from an empty topology")
        self.topology = topology
        self.input_dim = int(input_dim or topology.layers[0].neuron_count)
        self.seed = seed
        self.hidden_activation = topology.layers[0].activation
        self.output_activation = topology.layers[-1].activation
        self.reset(seed)

    @property
    def dims(self) -> List[int]:
        return [self.input_dim] + self.topology.layer_sizes

    def reset(self, seed: int) -> None:
        rng = np.random.default_rng(seed)
        layers: list[DenseLayer] = []
        dims = self.dims
        last = len(dims) - 2
        for idx, (in_dim, out_dim) in enumerate(zip(dims[:-1], dims[1:])):
            limit = np.sqrt(6.0 / (in_dim + out_dim))
            W = rng.uniform(-limit, limit, size=(in_dim, out_dim))
            layers.append(
                DenseLayer(
                    weights=W,
                    bias=np.zeros(out_dim),
                    activation=self.output_activation if idx == last else None,
                )
            )
        self._layers = layers

    @property
    def layers(self) -> Sequence[DenseLayer]:
        return tuple(self._layers)

    def predict(self, inputs: Array) -> Array:
        output, _ = self._forward(inputs)
        return output

    def _forward(self, inputs: Array) -> tuple[Array, _Cache]:
        cache = _Cache()
        x = np.asarray(inputs, dtype=np.float64)
        if x.ndim != 2 or x.shape[1] != self.input_dim:
            raise ShapeMismatch(f"expected inputs of width {self.input_dim}, got {x.shape}")
        last = len(self._layers) - 1
        for idx, layer in enumerate(self._layers):
            cache.inputs.append(x)
            z = layer.linear(x)
            activation = self.output_activation if idx == last else self.hidden_activation
            x = apply_activation(activation, z)
            cache.pre.append(z)
            cache.post.append(x)
        return x, cache

    def _backward(self, cache: _Cache, grad_out: Array) -> Gradients:
        grads: Gradients = {}
        grad = grad_out
        last = len(self._layers) - 1
        for idx in reversed(range(len(self._layers))):
            z, out = cache.pre[idx], cache.post[idx]
            activation = self.output_activation if idx == last else self.hidden_activation
            if activation is Activation.SOFTMAX:
                delta = out * (grad - np.sum(grad * out, axis=1, keepdims=True))
            else:
                delta = grad * DERIVATIVES[activation](z, out)
            grads[f"W{idx}"] = cache.inputs[idx].T @ delta
            grads[f"b{idx}"] = delta.sum(axis=0)
            grad = delta @ self._layers[idx].weights.T
        return grads

    def apply_gradients(self, updates: Gradients) -> None:
        for idx, layer in enumerate(self._layers):
            if f"W{idx}" in updates:
                layer.weights = layer.weights + updates[f"W{idx}"]
            if f"b{idx}" in updates:
                layer.bias = layer.bias + updates[f"b{idx}"]

    def state_dict(self) -> Mapping[str, Array]:
        state: Dict[str, Array] = {}
        for idx, layer in enumerate(self._layers):
            state[f"W{idx}"] = layer.weights.copy()
            state[f"b{idx}"] = layer.bias.copy()
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for idx, layer in enumerate(self._layers):
            for key in (f"W{idx}", f"b{idx}"):
                if key not in state:
                    raise KeyError(f"Missing weight {key} in state dict")
            layer.weights = np.array(state[f"W{idx}"], copy=True)
            layer.bias = np.array(state[f"b{idx}"], copy=True)

    def clone(self) -> "FeedForwardModel":
        twin = FeedForwardModel(self.topology, self.input_dim, self.seed)
        twin.load_state_dict(self.state_dict())
        return twin

    def parameter_count(self) -> int:
        return int(sum(layer.weights.size + layer.bias.size for layer in self._layers))


# ----------------------------------------------------------------------
# Optimizers


@dataclass
class SGDOptimizer:
    lr: float

    def step(self, model: FeedForwardModel, grads: Gradients) -> None:
        model.apply_gradients({name: -self.lr * grad for name, grad in grads.items()})


@dataclass
class AdamOptimizer:
    lr: float
    beta1: float = 0.9
    beta2: float = 0.999
    eps: float = 1e-7
    _m: Dict[str, Array] = field(default_factory=dict, repr=False)
    _v: Dict[str, Array] = field(default_factory=dict, repr=False)
    _t: int = 0

    def step(self, model: FeedForwardModel, grads: Gradients) -> None:
        self._t += 1
        updates: Gradients = {}
        for name, grad in grads.items():
            m = self._m.get(name, np.zeros_like(grad))
            v = self._v.get(name, np.zeros_like(grad))
            m = self.beta1 * m + (1 - self.beta1) * grad
            v = self.beta2 * v + (1 - self.beta2) * grad**2
            self._m[name], self._v[name] = m, v
            m_hat = m / (1 - self.beta1**self._t)
            v_hat = v / (1 - self.beta2**self._t)
            updates[name] = -self.lr * m_hat / (np.sqrt(v_hat) + self.eps)
        model.apply_gradients(updates)


@dataclass
class RMSPropOptimizer:
    lr: float
    rho: float = 0.9
    eps: float = 1e-7
    _ms: Dict[str, Array] = field(default_factory=dict, repr=False)

    def step(self, model: FeedForwardModel, grads: Gradients) -> None:
        updates: Gradients = {}
        for name, grad in grads.items():
            ms = self.rho * self._ms.get(name, np.zeros_like(grad)) + (1 - self.rho) * grad**2
            self._ms[name] = ms
            updates[name] = -self.lr * grad / (np.sqrt(ms) + self.eps)
        model.apply_gradients(updates)


_OPTIMIZERS = {
    Optimizer.SGD: SGDOptimizer,
    Optimizer.ADAM: AdamOptimizer,
    Optimizer.RMSPROP: RMSPropOptimizer,
}


def make_optimizer(name: Optimizer | str, lr: float):
    try:
        return _OPTIMIZERS[Optimizer(name)](lr=lr)
    except ValueError as exc:
        raise KeyError(f"Unknown optimizer: {name}") from exc


# ----------------------------------------------------------------------
# Training loop


class CancelToken:
    """Cooperative cancellation flag checked between mini-batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise TrainingCancelled("training cancelled")


@dataclass(frozen=True)
class TrainingResult:
    epochs_completed: int
    history: tuple[EpochMetrics, ...]

    @property
    def final(self) -> EpochMetrics | None:
        return self.history[-1] if self.history else None


class Trainer:
    """Mini-batch backpropagation with per-epoch callbacks."""

    def __init__(
        self,
        model: FeedForwardModel,
        optimizer,
        loss: Loss,
        *,
        seed: int = 0,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.model = model
        self.optimizer = optimizer
        self.loss = loss
        self.seed = seed
        self.callbacks = list(callbacks or [])

    def run(
        self,
        features: Array,
        labels: Array,
        *,
        epochs: int,
        batch_size: int,
        validation_split: float = 0.0,
        on_epoch: EpochCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> TrainingResult:
        features = np.asarray(features, dtype=np.float64)
        labels = np.asarray(labels, dtype=np.float64)
        if features.shape[0] != labels.shape[0]:
            raise ShapeMismatch(
                f"Mismatch in number of samples: features have {features.shape[0]}, "
                f"labels have {labels.shape[0]}"
            )
        if features.shape[0] == 0:
            raise TrainingFailed("Training data is empty")
        if labels.shape[1] != self.model.dims[-1]:
            raise ShapeMismatch(
                f"labels have {labels.shape[1]} columns, model outputs {self.model.dims[-1]}"
            )

        split = validation_split_indices(features.shape[0], validation_split)
        rng = np.random.default_rng(self.seed)
        history: list[EpochMetrics] = []
        for epoch in range(epochs):
            if cancel is not None:
                cancel.check()
            try:
                with np.errstate(over="raise", invalid="raise", divide="raise"):
                    metrics = self._run_epoch(epoch, features, labels, split, batch_size, rng, cancel)
            except FloatingPointError as exc:
                message = f"numeric failure in epoch {epoch + 1}: {exc}"
                if "overflow" in str(exc) or "invalid value" in str(exc):
                    raise NumericInstability(message) from exc
                raise TrainingFailed(message) from exc
            history.append(metrics)
            logger.debug(
                "Epoch %d: loss = %.4f, accuracy = %.4f", epoch + 1, metrics.loss, metrics.accuracy
            )
            self._emit_epoch(epoch, metrics, on_epoch)
        return TrainingResult(epochs_completed=len(history), history=tuple(history))

    # ------------------------------------------------------------------
    # Internal helpers

    def _run_epoch(
        self,
        epoch: int,
        features: Array,
        labels: Array,
        split,
        batch_size: int,
        rng: np.random.Generator,
        cancel: CancelToken | None,
    ) -> EpochMetrics:
        order = rng.permutation(split.train)
        for start in range(0, order.size, max(1, batch_size)):
            if cancel is not None:
                cancel.check()
            idx = order[start : start + batch_size]
            output, cache = self.model._forward(features[idx])
            loss_value, grad = self.loss(output, labels[idx])
            self._ensure_finite(loss_value, epoch)
            grads = self.model._backward(cache, grad)
            self.optimizer.step(self.model, grads)

        loss_value, acc = self._evaluate(features[split.train], labels[split.train])
        self._ensure_finite(loss_value, epoch)
        val_loss = val_acc = None
        if split.val.size:
            val_loss, val_acc = self._evaluate(features[split.val], labels[split.val])
        return EpochMetrics(
            epoch=epoch, loss=loss_value, accuracy=acc, val_loss=val_loss, val_accuracy=val_acc
        )

    def _evaluate(self, features: Array, labels: Array) -> tuple[float, float]:
        output = self.model.predict(features)
        loss_value, _ = self.loss(output, labels)
        return float(loss_value), accuracy(output, labels)

    @staticmethod
    def _ensure_finite(loss_value: float, epoch: int) -> None:
        if not np.isfinite(loss_value):
            raise NumericInstability(f"loss became non-finite in epoch {epoch + 1}")

    def _emit_epoch(
        self, epoch: int, metrics: EpochMetrics, on_epoch: EpochCallback | None
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)
        if on_epoch is not None:
            on_epoch(epoch, metrics)


def train_model(
    model: FeedForwardModel,
    features: Array,
    labels: Array,
    config: NetworkConfig,
    *,
    on_epoch: EpochCallback | None = None,
    cancel: CancelToken | None = None,
    seed: int = 0,
    callbacks: Sequence[object] | None = None,
) -> TrainingResult:
    """Train ``model`` in place with the hyperparameters from ``config``."""

    trainer = Trainer(
        model,
        make_optimizer(config.optimizer, config.learning_rate),
        LOSS_REGISTRY.get(config.loss_function),
        seed=seed,
        callbacks=callbacks,
    )
    return trainer.run(
        features,
        labels,
        epochs=config.epochs,
        batch_size=config.batch_size,
        validation_split=config.validation_split,
        on_epoch=on_epoch,
        cancel=cancel,
    )


__all__ = [
    "AdamOptimizer",
    "CancelToken",
    "DenseLayer",
    "FeedForwardModel",
    "RMSPropOptimizer",
    "SGDOptimizer",
    "Trainer",
    "TrainingResult",
    "make_optimizer",
    "train_model",
]
