"""Pause injection: let time pass without starting anyone."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from openload.injection.base import InjectionStep, _validate_non_negative

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np


@dataclass(frozen=True)
class NothingFor(InjectionStep):
    """Start no users for *duration* seconds, delaying every later step.

    Args:
        duration: Seconds to wait.  Must be >= 0.

    Raises:
        SchedulingError: If *duration* is negative or not finite.
    """

    duration: float

    def __post_init__(self) -> None:
        _validate_non_negative(self.duration, "duration")

    @property
    def span(self) -> float:
        return float(self.duration)

    @property
    def user_count(self) -> int:
        return 0

    def iter_offsets(self, rng: np.random.Generator) -> Iterator[float]:  # noqa: ARG002
        yield from ()

    def describe(self) -> str:
        return f"NothingFor: {self.duration}s"
