"""Turn activation snapshots into timed animation plans.

A plan is a plain tuple of :class:`~nnviz.core.types.TimedStep` values.
Building one never schedules anything; :mod:`nnviz.runtime.player` executes
plans.

The backward direction only re-times known values.  No gradients are computed
here: callers pass per-layer error magnitudes from the training engine, or the
forward activations are echoed as stand-ins.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import groupby
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .errors import EmptyTrace, ShapeMismatch
from .forward import check_snapshot
from .types import ActivationSnapshot, Direction, TimedStep, Topology


@dataclass(frozen=True)
class VisualMapping:
    """Presentation mapping ``radius = base + activation * gain``."""

    base_radius: float = 6.0
    radius_gain: float = 8.0

    def radius(self, activation: float) -> float:
        return self.base_radius + activation * self.radius_gain

    @staticmethod
    def color_mix(activation: float) -> float:
        return float(min(max(activation, 0.0), 1.0))


def backward_magnitudes(
    snapshot: ActivationSnapshot,
    errors: Sequence[Sequence[float]] | None = None,
) -> ActivationSnapshot:
    """Values displayed by the backward animation.

    ``errors`` are externally supplied per-layer magnitudes and must match the
    snapshot layer by layer.  Without them the absolute forward activations
    are used.
    """

    if errors is None:
        layers = tuple(np.abs(values) for values in snapshot.layers)
        return ActivationSnapshot(layers=layers, sample_index=snapshot.sample_index)
    if len(errors) != len(snapshot.layers):
        raise ShapeMismatch(
            f"got {len(errors)} error vectors for {len(snapshot.layers)} layers"
        )
    layers = []
    for index, (err, values) in enumerate(zip(errors, snapshot.layers)):
        arr = np.abs(np.asarray(err, dtype=np.float64))
        if arr.shape != values.shape:
            raise ShapeMismatch(
                f"layer {index} error vector has shape {arr.shape}, expected {values.shape}"
            )
        layers.append(arr)
    return ActivationSnapshot(layers=tuple(layers), sample_index=snapshot.sample_index)


def build_plan(
    trace: ActivationSnapshot,
    direction: Direction | str = Direction.FORWARD,
    per_layer_delay_ms: int = 500,
    per_transition_duration_ms: int = 500,
    *,
    topology: Topology | None = None,
    mapping: VisualMapping | None = None,
) -> Tuple[TimedStep, ...]:
    """Build the ordered steps for ``trace``.

    Forward plans start layer ``i`` at ``i * per_layer_delay_ms``.  Backward
    plans walk from the last layer to the first, each group starting
    ``per_layer_delay_ms`` after the previously processed one.

    Layer sizes are only validated when ``topology`` is passed; without it
    the trace is planned as recorded.  Callers holding a topology should
    pass it so a stale trace raises ``ShapeMismatch``.
    """

    if not trace.layers:
        raise EmptyTrace("activation trace has no layers")
    if per_layer_delay_ms < 0 or per_transition_duration_ms < 0:
        raise ValueError("delays and durations must be non-negative")
    if topology is not None:
        check_snapshot(trace, topology)
    visual = mapping or VisualMapping()
    direction = Direction(direction)

    order = list(range(len(trace.layers)))
    if direction is Direction.BACKWARD:
        order.reverse()

    steps: List[TimedStep] = []
    for position, layer_index in enumerate(order):
        at_ms = int(position * per_layer_delay_ms)
        for neuron_index, raw in enumerate(trace.layers[layer_index]):
            value = float(raw)
            steps.append(
                TimedStep(
                    at_ms=at_ms,
                    layer_index=layer_index,
                    neuron_index=neuron_index,
                    value=value,
                    radius=visual.radius(value),
                    color_mix=visual.color_mix(value),
                    duration_ms=int(per_transition_duration_ms),
                )
            )
    return tuple(steps)


def plan_duration(plan: Sequence[TimedStep]) -> int:
    """Milliseconds until the last transition of ``plan`` finishes."""

    if not plan:
        return 0
    return max(step.at_ms + step.duration_ms for step in plan)


def group_by_time(plan: Sequence[TimedStep]) -> Dict[int, Tuple[TimedStep, ...]]:
    ordered = sorted(plan, key=lambda step: step.at_ms)
    return {at: tuple(group) for at, group in groupby(ordered, key=lambda step: step.at_ms)}


__all__ = [
    "VisualMapping",
    "backward_magnitudes",
    "build_plan",
    "group_by_time",
    "plan_duration",
]
