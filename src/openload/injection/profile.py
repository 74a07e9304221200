"""Injection profile: chain injection steps back to back."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from openload._internal.errors import SchedulingError
from openload.injection.base import InjectionStep

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class InjectionProfile:
    """An ordered, immutable sequence of injection steps.

    Steps run one after another: each step's offsets are shifted by the
    summed spans of the steps before it, so offsets across the whole
    profile never decrease.

    Iterating a profile is pure.  Randomized steps draw from a generator
    seeded with :attr:`seed`; when no seed is given one is fixed at
    construction time, so every iteration of the same profile yields the
    same offsets.

    Args:
        steps: Injection steps in execution order.  May be empty.
        seed: Seed for randomized arrivals.

    Raises:
        SchedulingError: If any entry of *steps* is not an InjectionStep.

    Example::

        profile = InjectionProfile(
            [
                AtOnce(count=10),
                NothingFor(duration=5.0),
                RampUsers(count=50, duration=60.0),
            ]
        )
        profile.total_users  # 60
        profile.duration  # 65.0
    """

    def __init__(self, steps: Sequence[InjectionStep], seed: int | None = None) -> None:
        for i, step in enumerate(steps):
            if not isinstance(step, InjectionStep):
                msg = f"steps[{i}] must be an InjectionStep, got {type(step).__name__}"
                raise SchedulingError(msg)
        self._steps: tuple[InjectionStep, ...] = tuple(steps)
        if seed is None:
            seed = int(np.random.SeedSequence().generate_state(1)[0])
        self._seed = seed

    @property
    def steps(self) -> tuple[InjectionStep, ...]:
        """Return the injection steps in order."""
        return self._steps

    @property
    def seed(self) -> int:
        """Return the seed used for randomized arrivals."""
        return self._seed

    @property
    def total_users(self) -> int:
        """Return the total number of virtual users across all steps."""
        return sum(step.user_count for step in self._steps)

    @property
    def duration(self) -> float:
        """Return the summed span of all steps in seconds."""
        return sum(step.span for step in self._steps)

    def iter_offsets(self) -> Iterator[float]:
        """Yield the start offset of every virtual user in the profile.

        Yields:
            Offsets in seconds from the start of the run, non-decreasing.
        """
        rng = np.random.default_rng(self._seed)
        global_offset = 0.0
        for step in self._steps:
            for local_offset in step.iter_offsets(rng):
                yield global_offset + local_offset
            global_offset += step.span

    def describe(self) -> str:
        """Return a human-readable description listing each step."""
        header = f"Profile: {len(self._steps)} steps, {self.total_users} users"
        step_descs = [f"  {i + 1}. {s.describe()}" for i, s in enumerate(self._steps)]
        return "\n".join([header, *step_descs])

    def __repr__(self) -> str:
        return f"InjectionProfile(steps={list(self._steps)!r}, seed={self._seed})"


def inject_open(*steps: InjectionStep, seed: int | None = None) -> InjectionProfile:
    """Build an open-model profile from steps given as positional arguments.

    Example::

        profile = inject_open(AtOnce(count=1))
    """
    return InjectionProfile(steps, seed=seed)
