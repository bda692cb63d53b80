"""Metric helpers for the trainer."""

from __future__ import annotations

import numpy as np

from ..core.types import Array


def accuracy(predictions: Array, targets: Array) -> float:
    """Fraction of rows whose predicted class matches the target.

    Multi-column targets compare argmax indices; single-column targets are
    thresholded at 0.5.
    """

    if predictions.shape[0] == 0:
        return 0.0
    if targets.ndim == 2 and targets.shape[1] > 1:
        pred_idx = np.argmax(predictions, axis=1)
        targ_idx = np.argmax(targets, axis=1)
    else:
        pred_idx = (predictions.reshape(-1) >= 0.5).astype(int)
        targ_idx = (targets.reshape(-1) >= 0.5).astype(int)
    return float(np.mean(pred_idx == targ_idx))


__all__ = ["accuracy"]
