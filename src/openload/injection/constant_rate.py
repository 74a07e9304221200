"""Constant-rate injection: a steady arrival rate held for a duration."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from openload._internal.errors import SchedulingError
from openload.injection.base import InjectionStep, _validate_non_negative

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np

# Absorbs float error in rate * duration (e.g. 0.29 * 100 == 28.999...).
_COUNT_EPSILON = 1e-9


@dataclass(frozen=True)
class ConstantRate(InjectionStep):
    """Start users at *rate* per second for *duration* seconds.

    The step starts ``floor(rate * duration)`` users.  By default arrivals
    are evenly spaced ``1 / rate`` seconds apart beginning at offset 0.  With
    ``randomized=True`` the same number of users arrive as a Poisson process:
    given a fixed arrival count, Poisson arrival times are uniformly
    distributed over the window, so offsets are sorted uniform draws.

    Args:
        rate: Users per second.  Must be >= 0.
        duration: Seconds to hold the rate.  Must be >= 0.
        randomized: Use Poisson arrivals instead of even spacing.

    Raises:
        SchedulingError: If *rate* or *duration* is negative or not finite.

    Example::

        ConstantRate(rate=2.0, duration=3.0)
        # 6 users at 0.0, 0.5, 1.0, 1.5, 2.0, 2.5
    """

    rate: float
    duration: float
    randomized: bool = False

    def __post_init__(self) -> None:
        _validate_non_negative(self.rate, "rate")
        _validate_non_negative(self.duration, "duration")
        if not math.isfinite(self.rate * self.duration):
            msg = f"rate * duration is too large: {self.rate} * {self.duration}"
            raise SchedulingError(msg)

    @property
    def span(self) -> float:
        return float(self.duration)

    @property
    def user_count(self) -> int:
        return math.floor(self.rate * self.duration + _COUNT_EPSILON)

    def iter_offsets(self, rng: np.random.Generator) -> Iterator[float]:
        count = self.user_count
        if count == 0:
            return
        if self.randomized:
            offsets = rng.uniform(0.0, self.duration, size=count)
            offsets.sort()
            for offset in offsets:
                yield float(offset)
            return
        interval = 1.0 / self.rate
        for i in range(count):
            yield i * interval

    def describe(self) -> str:
        mode = "poisson" if self.randomized else "even"
        return f"ConstantRate: {self.rate} users/s for {self.duration}s ({mode})"
