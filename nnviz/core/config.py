"""Single source of truth for network hyperparameters."""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import warnings
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence

import numpy as np
import yaml

from .errors import ValidationError
from .topology import recommend_layers
from .types import (
    HIDDEN_ACTIVATIONS,
    Activation,
    Dataset,
    LossFunction,
    NetworkConfig,
    Optimizer,
)

logger = logging.getLogger(__name__)

MAX_LAYERS = 10
MAX_NEURONS = 1024
MAX_EPOCHS = 1000
MAX_BATCH_SIZE = 1024
MAX_VALIDATION_SPLIT = 0.5

FIELD_ALIASES: Dict[str, str] = {
    "layerCount": "layer_count",
    "layers": "layer_count",
    "neuronsPerLayer": "neurons_per_layer",
    "neurons": "neurons_per_layer",
    "activationFunction": "activation",
    "learningRate": "learning_rate",
    "batchSize": "batch_size",
    "lossFunction": "loss_function",
    "validationSplit": "validation_split",
}

_LEGACY_LOSS_NAMES = {
    "mse": LossFunction.MEAN_SQUARED_ERROR,
    "categorical_crossentropy": LossFunction.CATEGORICAL_CROSSENTROPY,
    "binary_crossentropy": LossFunction.BINARY_CROSSENTROPY,
}

Listener = Callable[[NetworkConfig, NetworkConfig], None]


def canonical_field(name: str) -> str:
    field = FIELD_ALIASES.get(name, name)
    if field not in {f.name for f in dataclasses.fields(NetworkConfig)}:
        raise ValidationError(name, "unknown configuration field")
    return field


# ----------------------------------------------------------------------
# Per-field coercion and range checks


def _as_int(field: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, f"expected an integer, got {value!r}")
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(field, f"expected an integer, got {value!r}")


def _as_float(field: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(field, f"expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, f"expected a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValidationError(field, f"expected a finite number, got {value!r}")
    return number


def _in_range(field: str, value, low, high):
    if not low <= value <= high:
        raise ValidationError(field, f"must be between {low} and {high}, got {value}")
    return value


def _as_neurons(value: Any) -> tuple:
    field = "neurons_per_layer"
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (Sequence, np.ndarray)):
        parts = list(value)
    else:
        raise ValidationError(field, f"expected a sequence of integers, got {value!r}")
    if not parts:
        raise ValidationError(field, "at least one layer is required")
    counts = tuple(_in_range(field, _as_int(field, part), 1, MAX_NEURONS) for part in parts)
    _in_range("layer_count", len(counts), 1, MAX_LAYERS)
    return counts


def _as_activation(value: Any) -> Activation:
    try:
        activation = Activation(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise ValidationError("activation", f"unknown activation {value!r}") from None
    if activation not in HIDDEN_ACTIVATIONS:
        allowed = ", ".join(a.value for a in HIDDEN_ACTIVATIONS)
        raise ValidationError("activation", f"must be one of {allowed}")
    return activation


def _as_optimizer(value: Any) -> Optimizer:
    try:
        return Optimizer(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise ValidationError("optimizer", f"unknown optimizer {value!r}") from None


def _as_loss(value: Any) -> LossFunction:
    raw = str(getattr(value, "value", value))
    if raw in _LEGACY_LOSS_NAMES:
        warnings.warn(
            f"Loss name {raw!r} is deprecated; use {_LEGACY_LOSS_NAMES[raw].value!r}",
            DeprecationWarning,
            stacklevel=4,
        )
        return _LEGACY_LOSS_NAMES[raw]
    try:
        return LossFunction(raw)
    except ValueError:
        raise ValidationError("loss_function", f"unknown loss function {value!r}") from None


def _learning_rate(value: Any) -> float:
    rate = _as_float("learning_rate", value)
    if not 0.0 < rate <= 1.0:
        raise ValidationError("learning_rate", f"must be in (0, 1], got {rate}")
    return rate


_COERCE: Dict[str, Callable[[Any], Any]] = {
    "layer_count": lambda v: _in_range("layer_count", _as_int("layer_count", v), 1, MAX_LAYERS),
    "neurons_per_layer": _as_neurons,
    "activation": _as_activation,
    "learning_rate": _learning_rate,
    "epochs": lambda v: _in_range("epochs", _as_int("epochs", v), 1, MAX_EPOCHS),
    "batch_size": lambda v: _in_range("batch_size", _as_int("batch_size", v), 1, MAX_BATCH_SIZE),
    "optimizer": _as_optimizer,
    "loss_function": _as_loss,
    "validation_split": lambda v: _in_range(
        "validation_split", _as_float("validation_split", v), 0.0, MAX_VALIDATION_SPLIT
    ),
}


def resize_neurons(counts: Sequence[int], layer_count: int) -> tuple:
    """Grow with ``1`` or truncate from the tail to ``layer_count`` entries."""

    resized = list(counts)[:layer_count]
    resized.extend([1] * (layer_count - len(resized)))
    return tuple(resized)


def validate_config(config: NetworkConfig) -> NetworkConfig:
    """Coerce every field and check the length invariant."""

    values = {
        f.name: _COERCE[f.name](getattr(config, f.name)) for f in dataclasses.fields(config)
    }
    if len(values["neurons_per_layer"]) != values["layer_count"]:
        raise ValidationError(
            "neurons_per_layer",
            f"has {len(values['neurons_per_layer'])} entries for {values['layer_count']} layers",
        )
    return NetworkConfig(**values)


def config_from_mapping(data: Mapping[str, Any], base: NetworkConfig | None = None) -> NetworkConfig:
    """Build a config from a (possibly camelCase) mapping layered over ``base``."""

    values = dataclasses.asdict(base or NetworkConfig())
    given = {canonical_field(key): value for key, value in data.items()}
    values.update(given)
    if "neurons_per_layer" in given and "layer_count" not in given:
        values["layer_count"] = len(_as_neurons(values["neurons_per_layer"]))
    elif "layer_count" in given and "neurons_per_layer" not in given:
        count = _COERCE["layer_count"](values["layer_count"])
        values["neurons_per_layer"] = resize_neurons(values["neurons_per_layer"], count)
    return validate_config(NetworkConfig(**values))


def config_to_dict(config: NetworkConfig) -> Dict[str, Any]:
    return {
        "layer_count": config.layer_count,
        "neurons_per_layer": list(config.neurons_per_layer),
        "activation": config.activation.value,
        "learning_rate": config.learning_rate,
        "epochs": config.epochs,
        "batch_size": config.batch_size,
        "optimizer": config.optimizer.value,
        "loss_function": config.loss_function.value,
        "validation_split": config.validation_split,
    }


def load_config_file(path: str | Path, base: NetworkConfig | None = None) -> NetworkConfig:
    """Read a JSON or YAML config file."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return config_from_mapping(data, base)


class ConfigStateManager:
    """Owns the committed :class:`NetworkConfig`.

    Every mutation builds a complete new config, validates it and only then
    commits it, so readers only ever see fully consistent records.
    Listeners are notified after a commit that changed the config.
    """

    def __init__(self, initial: NetworkConfig | None = None) -> None:
        self._config = validate_config(initial or NetworkConfig())
        self._listeners: List[Listener] = []

    def current(self) -> NetworkConfig:
        return self._config

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, field: str, value: Any) -> NetworkConfig:
        name = canonical_field(field)
        coerced = _COERCE[name](value)
        current = self._config
        if name == "layer_count":
            candidate = dataclasses.replace(
                current,
                layer_count=coerced,
                neurons_per_layer=resize_neurons(current.neurons_per_layer, coerced),
            )
        elif name == "neurons_per_layer":
            candidate = dataclasses.replace(
                current, neurons_per_layer=coerced, layer_count=len(coerced)
            )
        else:
            candidate = dataclasses.replace(current, **{name: coerced})
        return self._commit(candidate)

    def set_layer_neurons(self, index: int, value: Any) -> NetworkConfig:
        counts = list(self._config.neurons_per_layer)
        if not 0 <= index < len(counts):
            raise ValidationError("neurons_per_layer", f"no layer at index {index}")
        counts[index] = value
        return self.update("neurons_per_layer", counts)

    def add_layer(self) -> NetworkConfig:
        return self.update("layer_count", self._config.layer_count + 1)

    def remove_layer(self) -> NetworkConfig:
        return self.update("layer_count", self._config.layer_count - 1)

    def replace(self, config: NetworkConfig) -> NetworkConfig:
        return self._commit(validate_config(config))

    def apply_dataset_defaults(self, dataset: Dataset) -> NetworkConfig:
        """Apply the one-time 3-layer suggestion for a freshly loaded dataset."""

        counts = tuple(min(max(1, n), MAX_NEURONS) for n in recommend_layers(dataset))
        logger.info("Suggesting layers %s for dataset %s", list(counts), dataset.name)
        candidate = dataclasses.replace(self._config, layer_count=3, neurons_per_layer=counts)
        return self._commit(candidate)

    def _commit(self, candidate: NetworkConfig) -> NetworkConfig:
        previous = self._config
        if candidate == previous:
            return previous
        self._config = candidate
        logger.debug("Committed config %s", candidate)
        for listener in list(self._listeners):
            listener(previous, candidate)
        return candidate


__all__ = [
    "ConfigStateManager",
    "FIELD_ALIASES",
    "MAX_LAYERS",
    "MAX_NEURONS",
    "canonical_field",
    "config_from_mapping",
    "config_to_dict",
    "load_config_file",
    "resize_neurons",
    "validate_config",
]
