"""At-once injection: every user of the step starts immediately."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from openload.injection.base import InjectionStep, _validate_count

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np


@dataclass(frozen=True)
class AtOnce(InjectionStep):
    """Start *count* virtual users at offset 0.

    Args:
        count: Number of users to start.  Must be >= 0.

    Raises:
        SchedulingError: If *count* is negative.

    Example::

        AtOnce(count=1)  # a single user, started right away
    """

    count: int

    def __post_init__(self) -> None:
        _validate_count(self.count, "count")

    @property
    def span(self) -> float:
        return 0.0

    @property
    def user_count(self) -> int:
        return self.count

    def iter_offsets(self, rng: np.random.Generator) -> Iterator[float]:  # noqa: ARG002
        for _ in range(self.count):
            yield 0.0

    def describe(self) -> str:
        return f"AtOnce: {self.count} users"
