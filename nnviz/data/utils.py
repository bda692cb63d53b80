"""Utility helpers for dataset ingestion and splitting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np


def standardize(
    array: np.ndarray,
    *,
    mean: np.ndarray | None = None,
    std: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Apply standard scaling returning the scaled array and parameters."""

    if mean is None or std is None:
        mean = array.mean(axis=0, keepdims=True)
        std = array.std(axis=0, keepdims=True)
        std = np.where(std == 0, 1.0, std)
    scaled = (array - mean) / std
    return scaled.astype(np.float32), mean.astype(np.float32), std.astype(np.float32)


@dataclass(frozen=True)
class SplitIndices:
    """Indices for the train/validation partition."""

    train: np.ndarray
    val: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {"train": int(self.train.size), "val": int(self.val.size)}


def validation_split_indices(n_samples: int, validation_split: float) -> SplitIndices:
    """Hold out the trailing ``validation_split`` fraction of the samples.

    The split is taken before shuffling, so the same rows are always used for
    validation.  At least one training row is kept.
    """

    if not 0 <= validation_split < 1:
        raise ValueError("validation_split must be in [0, 1)")
    n_val = int(np.floor(n_samples * validation_split))
    n_val = min(n_val, max(n_samples - 1, 0))
    indices = np.arange(n_samples)
    return SplitIndices(train=indices[: n_samples - n_val], val=indices[n_samples - n_val :])


__all__ = ["SplitIndices", "standardize", "validation_split_indices"]
