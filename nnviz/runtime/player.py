"""Execute animation plans on the running event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from ..core.animation import group_by_time
from ..core.types import TimedStep

logger = logging.getLogger(__name__)

StepSink = Callable[[TimedStep], None]


class AnimationPlayer:
    """Deliver the steps of one plan at a time to ``sink``.

    Starting a plan cancels the plan that is still running, so steps from two
    plans are never interleaved.
    """

    def __init__(self, sink: StepSink, *, on_complete: Callable[[], None] | None = None) -> None:
        self._sink = sink
        self._on_complete = on_complete
        self._task: asyncio.Task | None = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def play(self, plan: Sequence[TimedStep]) -> asyncio.Task:
        self.cancel()
        self._generation += 1
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(tuple(plan), self._generation))
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            logger.debug("Cancelling running animation plan")
            self._task.cancel()
        # Bumping the generation stops a plan that is already between steps.
        self._generation += 1

    async def wait(self) -> bool:
        """Wait for the current plan; ``False`` if it was cancelled."""

        task = self._task
        if task is None:
            return True
        await asyncio.wait({task})
        if task.cancelled():
            return False
        task.result()
        return True

    async def _run(self, plan: tuple[TimedStep, ...], generation: int) -> None:
        loop = asyncio.get_running_loop()
        start = loop.time()
        for at_ms, group in sorted(group_by_time(plan).items()):
            delay = start + at_ms / 1000.0 - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if generation != self._generation:
                return
            for step in group:
                self._sink(step)
        if self._on_complete is not None:
            self._on_complete()


__all__ = ["AnimationPlayer", "StepSink"]
