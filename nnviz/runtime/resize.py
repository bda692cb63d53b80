"""Debounce viewport resize events."""

from __future__ import annotations

import asyncio
from typing import Callable, Tuple

from ..core.layout import check_dimensions


class ResizeCoalescer:
    """Call ``callback`` once with the latest size after ``delay_s`` of quiet.

    Intermediate sizes are dropped, never replayed.
    """

    def __init__(self, callback: Callable[[float, float], None], delay_s: float = 0.05) -> None:
        self._callback = callback
        self._delay = delay_s
        self._latest: Tuple[float, float] | None = None
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def submit(self, width: float, height: float) -> None:
        check_dimensions(width, height)
        self._latest = (float(width), float(height))
        if self._handle is not None:
            self._handle.cancel()
        self._handle = asyncio.get_running_loop().call_later(self._delay, self._flush)

    def flush_now(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._flush()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._latest = None

    def _flush(self) -> None:
        self._handle = None
        latest, self._latest = self._latest, None
        if latest is not None:
            self._callback(*latest)


__all__ = ["ResizeCoalescer"]
