import asyncio

import numpy as np
import pytest

from nnviz.core.animation import build_plan
from nnviz.core.errors import InvalidDimensions
from nnviz.core.types import ActivationSnapshot
from nnviz.runtime import AnimationPlayer, ResizeCoalescer


def _plan(marker: float, layers: int = 3, delay_ms: int = 10):
    trace = ActivationSnapshot(layers=tuple(np.full(2, marker) for _ in range(layers)))
    return build_plan(trace, per_layer_delay_ms=delay_ms, per_transition_duration_ms=0)


def test_player_delivers_plan_in_order():
    seen = []
    completed = []

    async def scenario():
        player = AnimationPlayer(seen.append, on_complete=lambda: completed.append(True))
        player.play(_plan(0.1))
        assert player.running
        return await player.wait()

    assert asyncio.run(scenario()) is True
    assert [step.layer_index for step in seen] == [0, 0, 1, 1, 2, 2]
    assert completed == [True]


def test_new_plan_supersedes_running_plan():
    seen = []

    async def scenario():
        player = AnimationPlayer(seen.append)
        player.play(_plan(0.1, delay_ms=1000))
        await asyncio.sleep(0)
        player.play(_plan(0.9, delay_ms=1))
        return await player.wait()

    assert asyncio.run(scenario()) is True
    # Only the first group of the superseded plan can have been delivered.
    stale = [step for step in seen if step.value == pytest.approx(0.1)]
    assert all(step.layer_index == 0 for step in stale)
    assert [step.layer_index for step in seen if step.value == pytest.approx(0.9)] == [
        0, 0, 1, 1, 2, 2,
    ]


def test_cancel_stops_plan():
    seen = []

    async def scenario():
        player = AnimationPlayer(seen.append)
        player.play(_plan(0.5, delay_ms=1000))
        await asyncio.sleep(0)
        player.cancel()
        finished = await player.wait()
        return finished, player.running

    finished, running = asyncio.run(scenario())
    assert finished is False
    assert running is False
    assert all(step.layer_index == 0 for step in seen)


def test_resize_coalesces_to_latest_size():
    calls = []

    async def scenario():
        coalescer = ResizeCoalescer(lambda w, h: calls.append((w, h)), delay_s=0.01)
        for width in range(100, 200, 10):
            coalescer.submit(width, 50)
        assert coalescer.pending
        await asyncio.sleep(0.05)
        assert not coalescer.pending

    asyncio.run(scenario())
    assert calls == [(190.0, 50.0)]


def test_resize_flush_cancel_and_validation():
    calls = []

    async def scenario():
        coalescer = ResizeCoalescer(lambda w, h: calls.append((w, h)), delay_s=10)
        coalescer.submit(300, 200)
        coalescer.flush_now()
        coalescer.submit(400, 200)
        coalescer.cancel()
        await asyncio.sleep(0)
        with pytest.raises(InvalidDimensions):
            coalescer.submit(0, 200)

    asyncio.run(scenario())
    assert calls == [(300.0, 200.0)]
