"""
When is the next rotation due?

Two triggers:
- time: ROTATE_AFTER seconds since the last rotation (None disables it)
- size: the current file's logical position reached SOFT_LIMIT

The size check is opportunistic; it happens whenever the host asks, not at
the exact byte boundary.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional

DISABLED = "disabled"
CLOCK_RESET = "clock_reset"
ELAPSED = "elapsed"
PENDING = "pending"


@dataclass(frozen=True)
class Countdown:
    seconds: Optional[int]   # None when time-based rotation is disabled
    reason: str              # disabled | clock_reset | elapsed | pending

    @property
    def due(self) -> bool:
        return self.seconds == 0

    def to_dict(self) -> dict:
        return {"seconds": self.seconds, "reason": self.reason, "due": self.due}


@dataclass
class RotationSchedule:
    rotate_after: Optional[int] = None
    soft_limit: int = 10 * 1024 * 1024
    last_rotation: Optional[float] = None

    def countdown(self, now: float) -> Countdown:
        """
        Seconds until the time trigger fires.

        If we never rotated, or the clock moved backwards past the last
        rotation, the baseline is reset to `now` and a rotation is due
        immediately (reason=clock_reset).
        """
        if self.rotate_after is None:
            return Countdown(None, DISABLED)
        if self.last_rotation is None or now < self.last_rotation:
            self.last_rotation = now
            return Countdown(0, CLOCK_RESET)
        elapsed = now - self.last_rotation
        if elapsed >= self.rotate_after:
            return Countdown(0, ELAPSED)
        return Countdown(max(1, math.ceil(self.rotate_after - elapsed)), PENDING)

    def size_exceeded(self, position: int) -> bool:
        return position >= self.soft_limit

    def mark_rotated(self, now: float) -> None:
        self.last_rotation = now
