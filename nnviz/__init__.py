"""nnviz public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.animation import VisualMapping, build_plan
from .core.config import ConfigStateManager, config_from_mapping, load_config_file
from .core.errors import NNVizError
from .core.forward import forward_pass
from .core.layout import LayoutOptions, layout
from .core.topology import recommend_layers, resolve
from .core.types import Dataset, Direction, NetworkConfig, Topology
from .data import load_csv, parse_tabular
from .runtime import AnimationPlayer, ResizeCoalescer, Session
from .training import FeedForwardModel, Trainer, train_model

__all__ = [
    "AnimationPlayer",
    "ConfigStateManager",
    "Dataset",
    "Direction",
    "FeedForwardModel",
    "LayoutOptions",
    "NNVizError",
    "NetworkConfig",
    "ResizeCoalescer",
    "Session",
    "Topology",
    "Trainer",
    "VisualMapping",
    "activations",
    "build_plan",
    "config_from_mapping",
    "forward_pass",
    "layout",
    "load_config_file",
    "load_csv",
    "parse_tabular",
    "recommend_layers",
    "resolve",
    "train_model",
    "types",
]
