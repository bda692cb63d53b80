"""Training boundary: numpy predictor, optimizers, losses and the trainer."""

from .losses import REGISTRY as LOSSES
from .metrics import accuracy
from .trainer import (
    CancelToken,
    FeedForwardModel,
    Trainer,
    TrainingResult,
    make_optimizer,
    train_model,
)

__all__ = [
    "CancelToken",
    "FeedForwardModel",
    "LOSSES",
    "Trainer",
    "TrainingResult",
    "accuracy",
    "make_optimizer",
    "train_model",
]
