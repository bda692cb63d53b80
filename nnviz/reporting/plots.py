"""Headless-safe rendering of a laid-out network."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from ..core.animation import VisualMapping
from ..core.types import ActivationSnapshot, EpochMetrics, Layout


def _pyplot():
    import matplotlib

    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt  # imported lazily for headless safety

    return plt


def render_network(
    layout: Layout,
    snapshot: ActivationSnapshot | None,
    path: str | Path,
    *,
    viewport: Tuple[float, float] = (800.0, 600.0),
    mapping: VisualMapping | None = None,
    title: str | None = None,
) -> Path:
    """Draw connections and neurons to ``path``.

    With a ``snapshot`` each neuron is sized and shaded by its activation
    through ``mapping``; otherwise every neuron uses the base radius.
    """

    plt = _pyplot()
    mapping = mapping or VisualMapping()
    width, height = viewport
    fig, ax = plt.subplots(figsize=(width / 100.0, height / 100.0), dpi=100)
    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.set_aspect("equal")
    ax.axis("off")

    for conn in layout.connections:
        ax.plot(
            [conn.source.x, conn.target.x],
            [conn.source.y, conn.target.y],
            color="#999999",
            linewidth=0.5,
            zorder=1,
        )

    for pos in layout.flat_positions():
        value = 0.0
        if snapshot is not None and pos.layer_index < len(snapshot.layers):
            values = snapshot.layers[pos.layer_index]
            if pos.neuron_index < values.shape[0]:
                value = float(values[pos.neuron_index])
        mix = mapping.color_mix(value)
        circle = plt.Circle(
            (pos.x, pos.y),
            mapping.radius(value),
            facecolor=(mix, 0.3, 1.0 - mix),
            edgecolor="black",
            linewidth=0.8,
            zorder=2,
        )
        ax.add_patch(circle)

    if title:
        ax.set_title(title)
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out)
    plt.close(fig)
    return out


class HistoryPlot:
    """Collect epoch metrics and write a loss/accuracy curve on ``close``."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._history: List[EpochMetrics] = []

    def on_epoch(self, epoch: int, metrics: EpochMetrics) -> None:
        self._history.append(metrics)

    __call__ = on_epoch

    def close(self) -> Path | None:
        if not self._history:
            return None
        plt = _pyplot()
        epochs = [m.epoch + 1 for m in self._history]
        fig, ax = plt.subplots()
        ax.plot(epochs, [m.loss for m in self._history], label="loss")
        ax.plot(epochs, [m.accuracy for m in self._history], label="accuracy")
        ax.set_xlabel("Epoch")
        ax.set_title("Training Curve")
        ax.legend()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(self.path)
        plt.close(fig)
        return self.path


__all__ = ["HistoryPlot", "render_network"]
