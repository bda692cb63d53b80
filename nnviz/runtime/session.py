"""Interactive session tying config, dataset, predictor and animation together.

The session is the single owner of the mutable state and runs on one asyncio
event loop.  Training and forward passes run in worker threads on private
copies; their results are applied on the loop only if no dataset load or
topology change happened in the meantime.  It is also the only place where
component failures turn into user-facing status messages.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Tuple

import numpy as np

from ..core.animation import backward_magnitudes, build_plan
from ..core.config import ConfigStateManager
from ..core.errors import (
    EmptyTrace,
    NotReady,
    NumericInstability,
    ShapeMismatch,
    TrainingCancelled,
    TrainingFailed,
    ValidationError,
)
from ..core.forward import check_snapshot, forward_pass, select_sample
from ..core.layout import LayoutOptions, layout
from ..core.topology import resolve
from ..core.types import (
    ActivationSnapshot,
    Dataset,
    Direction,
    EpochMetrics,
    Layout,
    NetworkConfig,
    Topology,
)
from ..training.trainer import CancelToken, FeedForwardModel, TrainingResult, train_model
from .player import AnimationPlayer, StepSink
from .resize import ResizeCoalescer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStatus:
    level: str
    message: str


class Session:
    """Owner of ``NetworkConfig``, ``Dataset``, predictor and latest snapshot."""

    def __init__(
        self,
        config_manager: ConfigStateManager | None = None,
        *,
        viewport: Tuple[float, float] = (800.0, 600.0),
        options: LayoutOptions | None = None,
        seed: int = 0,
        rng: np.random.Generator | None = None,
        on_status: Callable[[SessionStatus], None] | None = None,
        step_sink: StepSink | None = None,
        per_layer_delay_ms: int = 500,
        per_transition_duration_ms: int = 500,
        resize_delay_s: float = 0.05,
        auto_build: bool = True,
    ) -> None:
        self.config_manager = config_manager or ConfigStateManager()
        self.options = options or LayoutOptions()
        self.seed = seed
        self.auto_build = auto_build
        self.per_layer_delay_ms = per_layer_delay_ms
        self.per_transition_duration_ms = per_transition_duration_ms
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._on_status = on_status
        self.player = AnimationPlayer(step_sink) if step_sink is not None else None
        self._resizer = ResizeCoalescer(self._apply_viewport, resize_delay_s)

        self.dataset: Dataset | None = None
        self.predictor: FeedForwardModel | None = None
        self.latest_snapshot: ActivationSnapshot | None = None
        self.history: List[EpochMetrics] = []
        self.messages: List[SessionStatus] = []
        self.viewport = (float(viewport[0]), float(viewport[1]))
        self.topology: Topology = resolve(self.config, None)
        self.layout: Layout = layout(self.topology, *self.viewport, self.options)

        self._generation = 0
        self._training_task: asyncio.Task | None = None
        self._cancel_token: CancelToken | None = None
        self._forward_task: asyncio.Task | None = None
        self._unsubscribe = self.config_manager.subscribe(self._on_config_commit)

    # ------------------------------------------------------------------
    # Read side

    @property
    def config(self) -> NetworkConfig:
        return self.config_manager.current()

    @property
    def status(self) -> SessionStatus | None:
        return self.messages[-1] if self.messages else None

    @property
    def training(self) -> bool:
        return self._training_task is not None and not self._training_task.done()

    # ------------------------------------------------------------------
    # Configuration and dataset events

    def update(self, field: str, value: Any) -> NetworkConfig:
        """Commit one field; invalid values are reported and leave the config as is."""

        try:
            return self.config_manager.update(field, value)
        except ValidationError as exc:
            self._report("error", f"Invalid {exc.field}: {exc.message}")
            return self.config

    def load_dataset(self, dataset: Dataset) -> None:
        self._invalidate(f"dataset {dataset.name} loaded")
        self.dataset = dataset
        self.history = []
        self.config_manager.apply_dataset_defaults(dataset)
        self._refresh_topology()
        self._report("info", f"Dataset loaded: {dataset.name} ({dataset.describe()})")
        if self.auto_build and self.predictor is None:
            self.build_predictor()

    def build_predictor(self) -> FeedForwardModel | None:
        if self.dataset is None:
            self._report("error", "Please load a valid dataset before updating the model")
            return None
        self._invalidate("model rebuilt")
        self.history = []
        self.predictor = FeedForwardModel(
            self.topology, input_dim=self.dataset.input_shape[0], seed=self.seed
        )
        logger.info(
            "Built predictor %s with %d parameters",
            self.topology.layer_sizes,
            self.predictor.parameter_count(),
        )
        return self.predictor

    def _on_config_commit(self, previous: NetworkConfig, current: NetworkConfig) -> None:
        if resolve(current, self.dataset) == self.topology:
            return
        self._invalidate("network topology changed")
        self._refresh_topology()
        if self.auto_build and self.dataset is not None:
            self.build_predictor()

    def _refresh_topology(self) -> None:
        topology = resolve(self.config, self.dataset)
        if topology != self.topology:
            self.topology = topology
            self._relayout()

    def _invalidate(self, reason: str) -> None:
        self._generation += 1
        self.cancel_training()
        if self._forward_task is not None and not self._forward_task.done():
            self._forward_task.cancel()
        self._forward_task = None
        if self.player is not None:
            self.player.cancel()
        if self.predictor is not None:
            logger.info("Discarding predictor: %s", reason)
        self.predictor = None
        self.latest_snapshot = None

    # ------------------------------------------------------------------
    # Viewport

    def resize(self, width: float, height: float) -> None:
        self._resizer.submit(width, height)

    def _apply_viewport(self, width: float, height: float) -> None:
        self.viewport = (width, height)
        self._relayout()

    def _relayout(self) -> None:
        self.layout = layout(self.topology, *self.viewport, self.options)

    # ------------------------------------------------------------------
    # Training

    def start_training(self) -> asyncio.Task | None:
        if self.dataset is None:
            self._report("error", "No dataset loaded")
            return None
        if self.predictor is None:
            self._report("error", "No model created")
            return None
        self.cancel_training()
        token = CancelToken()
        self._cancel_token = token
        self.history = []
        self._report("info", "Training model...")
        self._training_task = asyncio.get_running_loop().create_task(
            self._train(self.predictor.clone(), self.config, self.dataset, token, self._generation)
        )
        return self._training_task

    def cancel_training(self) -> None:
        if self._cancel_token is not None:
            self._cancel_token.cancel()
        if self._training_task is not None and not self._training_task.done():
            logger.info("Cancelling in-flight training")
            self._training_task.cancel()
        self._training_task = None
        self._cancel_token = None

    async def _train(
        self,
        candidate: FeedForwardModel,
        config: NetworkConfig,
        dataset: Dataset,
        token: CancelToken,
        generation: int,
    ) -> TrainingResult | None:
        loop = asyncio.get_running_loop()

        def on_epoch(epoch: int, metrics: EpochMetrics) -> None:
            # Runs in the worker thread; hand a frozen copy back to the loop.
            frozen = candidate.clone()
            loop.call_soon_threadsafe(self._on_epoch, generation, token, metrics, frozen)

        try:
            result = await asyncio.to_thread(
                train_model,
                candidate,
                dataset.features,
                dataset.labels,
                config,
                on_epoch=on_epoch,
                cancel=token,
                seed=self.seed,
            )
        except asyncio.CancelledError:
            token.cancel()
            raise
        except TrainingCancelled:
            logger.info("Training cancelled; partial results discarded")
            return None
        except (NumericInstability, TrainingFailed, ShapeMismatch) as exc:
            if generation == self._generation:
                self._report("error", f"Training failed: {exc}")
            return None

        if generation != self._generation or token.cancelled:
            return None
        self.predictor = candidate
        self._report("info", "Training completed")
        self.request_forward()
        return result

    def _on_epoch(
        self,
        generation: int,
        token: CancelToken,
        metrics: EpochMetrics,
        model: FeedForwardModel,
    ) -> None:
        if generation != self._generation or token.cancelled:
            return
        self.history.append(metrics)
        self._report(
            "info",
            f"Epoch {metrics.epoch + 1}: loss = {metrics.loss:.4f}, "
            f"accuracy = {metrics.accuracy:.4f}",
        )
        self.request_forward(predictor=model)

    # ------------------------------------------------------------------
    # Forward pass and animation

    def request_forward(
        self,
        sample_index: int | None = None,
        *,
        predictor: FeedForwardModel | None = None,
    ) -> asyncio.Task | None:
        """Start a forward pass, superseding one that is still in flight."""

        model = predictor or self.predictor
        if model is None or self.dataset is None:
            self._report("info", "Model or dataset is not available")
            return None
        try:
            index = select_sample(self.dataset.sample_count, sample_index, self._rng)
        except (NotReady, IndexError) as exc:
            self._report("error", str(exc))
            return None
        if self._forward_task is not None and not self._forward_task.done():
            logger.debug("Superseding stale forward pass")
            self._forward_task.cancel()
        self._forward_task = asyncio.get_running_loop().create_task(
            self._forward(model, index, self.config, self._generation)
        )
        return self._forward_task

    async def _forward(
        self,
        model: FeedForwardModel,
        sample_index: int,
        config: NetworkConfig,
        generation: int,
    ) -> ActivationSnapshot | None:
        dataset = self.dataset
        try:
            snapshot = await asyncio.to_thread(
                forward_pass, model, dataset.features, config.activation, sample_index=sample_index
            )
            if generation != self._generation:
                return None
            check_snapshot(snapshot, self.topology)
        except NumericInstability as exc:
            self._report("error", f"Training failed: {exc}")
            self.cancel_training()
            return None
        except (NotReady, ShapeMismatch) as exc:
            self._report("error", str(exc))
            return None
        self.latest_snapshot = snapshot
        if self.player is not None:
            self.play(snapshot, Direction.FORWARD)
        return snapshot

    def play(
        self,
        snapshot: ActivationSnapshot | None = None,
        direction: Direction | str = Direction.FORWARD,
        *,
        errors: Sequence[Sequence[float]] | None = None,
    ) -> asyncio.Task | None:
        """Build a plan from ``snapshot`` (default: the latest) and run it."""

        if self.player is None:
            raise RuntimeError("session was created without a step sink")
        trace = snapshot or self.latest_snapshot
        if trace is None:
            self._report("info", "No activations to animate yet")
            return None
        try:
            if Direction(direction) is Direction.BACKWARD:
                trace = backward_magnitudes(trace, errors)
            plan = build_plan(
                trace,
                direction,
                self.per_layer_delay_ms,
                self.per_transition_duration_ms,
                topology=self.topology,
            )
        except (EmptyTrace, ShapeMismatch) as exc:
            self._report("error", f"Cannot animate: {exc}")
            return None
        return self.player.play(plan)

    async def simulate_training_step(self, sample_index: int | None = None) -> bool:
        """Forward animation followed by the backward animation."""

        task = self.request_forward(sample_index)
        if task is None:
            return False
        await asyncio.wait({task})
        if task.cancelled():
            return False
        snapshot = task.result()
        if snapshot is None or self.player is None:
            return snapshot is not None
        if not await self.player.wait():
            return False
        if self.play(snapshot, Direction.BACKWARD) is None:
            return False
        return await self.player.wait()

    # ------------------------------------------------------------------

    async def close(self) -> None:
        self._unsubscribe()
        self._resizer.cancel()
        pending = [t for t in (self._training_task, self._forward_task) if t is not None]
        self._invalidate("session closed")
        for task in pending:
            await asyncio.wait({task})

    def _report(self, level: str, message: str) -> None:
        status = SessionStatus(level=level, message=message)
        logger.log(logging.ERROR if level == "error" else logging.INFO, message)
        self.messages.append(status)
        if self._on_status is not None:
            self._on_status(status)


__all__ = ["Session", "SessionStatus"]
