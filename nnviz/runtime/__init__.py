"""Event-loop side of nnviz: animation playback, resize debouncing and sessions."""

from .player import AnimationPlayer, StepSink
from .resize import ResizeCoalescer
from .session import Session, SessionStatus

__all__ = ["AnimationPlayer", "ResizeCoalescer", "Session", "SessionStatus", "StepSink"]
