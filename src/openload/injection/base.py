"""Abstract base class for all open-model injection steps."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from openload._internal.errors import SchedulingError

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np


class InjectionStep(ABC):
    """Abstract base for one step of an injection profile.

    An injection step says how many virtual users arrive and when, relative
    to the moment the step begins. Arrivals are independent of how long
    earlier users take to finish (open model). Concrete subclasses implement
    :meth:`iter_offsets` to yield start offsets in non-decreasing order.

    Example::

        step = RampUsers(count=5, duration=4.0)
        list(step.iter_offsets(rng))  # [0.0, 1.0, 2.0, 3.0, 4.0]
    """

    @property
    @abstractmethod
    def span(self) -> float:
        """Seconds this step occupies before the next step begins."""

    @property
    @abstractmethod
    def user_count(self) -> int:
        """Number of virtual users this step starts."""

    @abstractmethod
    def iter_offsets(self, rng: np.random.Generator) -> Iterator[float]:
        """Yield start offsets in seconds from the beginning of this step.

        Args:
            rng: Random generator for randomized arrivals. Deterministic
                steps ignore it.

        Yields:
            Start offsets in non-decreasing order.
        """

    @abstractmethod
    def describe(self) -> str:
        """Return a short human-readable description for logs."""


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`SchedulingError` if *value* is negative, NaN or infinite.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        SchedulingError: If *value* is < 0 or not finite.
    """
    if not math.isfinite(value):
        msg = f"{name} must be a finite number, got {value}"
        raise SchedulingError(msg)
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise SchedulingError(msg)


def _validate_count(value: int, name: str) -> None:
    """Raise :class:`SchedulingError` unless *value* is a non-negative int."""
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer, got {value!r}"
        raise SchedulingError(msg)
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise SchedulingError(msg)
