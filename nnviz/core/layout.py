"""Map a topology onto 2D coordinates inside a viewport."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .errors import InvalidDimensions, InvalidTopology
from .types import Connection, Layout, NeuronPosition, Topology


@dataclass(frozen=True)
class LayoutOptions:
    """Rendering options.

    Attributes
    ----------
    horizontal_padding:
        Space left and right of the outermost layers.
    vertical_padding:
        Space above the first and below the last neuron of a layer.
    neuron_radius:
        Radius the presentation layer should draw neurons with.  The layout
        itself does not use it.
    """

    horizontal_padding: float = 50.0
    vertical_padding: float = 50.0
    neuron_radius: float = 10.0


def check_dimensions(width: float, height: float) -> None:
    for label, value in (("width", width), ("height", height)):
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise InvalidDimensions(f"viewport {label} is not a number: {value!r}") from exc
        if not math.isfinite(number) or number <= 0:
            raise InvalidDimensions(f"viewport {label} must be a positive number, got {value!r}")


def _layer_x(index: int, layer_count: int, width: float, padding: float) -> float:
    if layer_count == 1:
        return width / 2.0
    spacing = (width - 2 * padding) / (layer_count - 1)
    return padding + index * spacing


def connections_from(
    positions: Sequence[Sequence[NeuronPosition]],
) -> Tuple[Connection, ...]:
    """Return the full bipartite connection set between adjacent layers."""

    connections: List[Connection] = []
    for left, right in zip(positions[:-1], positions[1:]):
        for source in left:
            for target in right:
                connections.append(Connection(source=source, target=target))
    return tuple(connections)


def layout_sizes(
    sizes: Sequence[int],
    width: float,
    height: float,
    options: LayoutOptions | None = None,
) -> Layout:
    """Lay out raw per-layer neuron counts."""

    if not sizes:
        raise InvalidTopology("topology has no layers")
    check_dimensions(width, height)
    opts = options or LayoutOptions()
    layer_count = len(sizes)

    positions: List[Tuple[NeuronPosition, ...]] = []
    for layer_index, size in enumerate(sizes):
        if size < 1:
            raise InvalidTopology(f"layer {layer_index} has {size} neurons")
        x = _layer_x(layer_index, layer_count, width, opts.horizontal_padding)
        spacing = (height - 2 * opts.vertical_padding) / max(size - 1, 1)
        positions.append(
            tuple(
                NeuronPosition(
                    x=x,
                    y=opts.vertical_padding + neuron_index * spacing,
                    layer_index=layer_index,
                    neuron_index=neuron_index,
                )
                for neuron_index in range(size)
            )
        )
    return Layout(positions=tuple(positions), connections=connections_from(positions))


def layout(
    topology: Topology,
    width: float,
    height: float,
    options: LayoutOptions | None = None,
) -> Layout:
    """Compute neuron positions and connections for ``topology``.

    Pure and deterministic: identical inputs always give equal layouts and a
    new :class:`Layout` is returned on every call.
    """

    if not topology.layers:
        raise InvalidTopology("topology has no layers")
    return layout_sizes(topology.layer_sizes, width, height, options)


__all__ = ["LayoutOptions", "check_dimensions", "connections_from", "layout", "layout_sizes"]
