"""Core topology, layout, forward-pass and animation primitives for nnviz."""

from . import activations, animation, config, errors, forward, layout, topology, types

__all__ = [
    "activations",
    "animation",
    "config",
    "errors",
    "forward",
    "layout",
    "topology",
    "types",
]
