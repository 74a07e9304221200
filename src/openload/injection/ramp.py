"""Ramp injection: users start at evenly spaced offsets across a window."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from openload.injection.base import InjectionStep, _validate_count, _validate_non_negative

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np


@dataclass(frozen=True)
class RampUsers(InjectionStep):
    """Start *count* users spread evenly over *duration* seconds.

    The first user starts at offset 0 and the last at *duration*; the
    spacing between consecutive starts is ``duration / (count - 1)``.  A
    single user starts at 0.  A zero *count* or zero *duration* produces no
    users at all.

    Args:
        count: Number of users to start.  Must be >= 0.
        duration: Length of the ramp window in seconds.  Must be >= 0.

    Raises:
        SchedulingError: If either argument is negative or not finite.

    Example::

        step = RampUsers(count=3, duration=10.0)
        # starts at 0.0, 5.0, 10.0
    """

    count: int
    duration: float

    def __post_init__(self) -> None:
        _validate_count(self.count, "count")
        _validate_non_negative(self.duration, "duration")

    @property
    def span(self) -> float:
        return float(self.duration)

    @property
    def user_count(self) -> int:
        if self.duration == 0:
            return 0
        return self.count

    def iter_offsets(self, rng: np.random.Generator) -> Iterator[float]:  # noqa: ARG002
        if self.user_count == 0:
            return
        if self.count == 1:
            yield 0.0
            return
        last = self.count - 1
        for i in range(last):
            yield i * self.duration / last
        # Last start equals span exactly; the next step begins there.
        yield float(self.duration)

    def describe(self) -> str:
        return f"Ramp: {self.count} users over {self.duration}s"
