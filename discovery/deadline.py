"""
End-to-end deadline for a discovery run.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from .errors import DeadlineExceeded


class Deadline:
    """
    Caller-supplied time budget, checked between stages and between polls.

    Usage:
        deadline = Deadline(180.0)
        deadline.check("plate_solving")

    A limit of None, zero or less means no deadline.
    """

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds if seconds is not None and seconds > 0 else None
        self._clock = clock
        self._started = clock()

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when there is no limit."""
        if self.seconds is None:
            return None
        return self.seconds - (self._clock() - self._started)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, stage: str):
        if self.expired:
            raise DeadlineExceeded(
                f"Discovery deadline of {self.seconds:.0f}s exceeded during {stage}",
                stage=stage,
            )
