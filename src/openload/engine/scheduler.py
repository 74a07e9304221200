"""Start-event scheduler that turns injection profiles into user arrivals."""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from openload.dsl.scenario import Population
    from openload.injection.profile import InjectionProfile


@dataclass(frozen=True)
class StartEvent:
    """A virtual user due to start.

    Attributes:
        virtual_user_id: Identifier unique within the schedule, assigned in
            start order beginning at 0.
        scheduled_time: Offset in seconds from the start of the run.
        scenario_name: Scenario the user will execute.
    """

    virtual_user_id: int
    scheduled_time: float
    scenario_name: str = ""


class Scheduler:
    """Merges the injection profiles of several populations into one
    time-ordered stream of :class:`StartEvent`.

    Each call to :meth:`iter_events` returns a fresh lazy iterator computed
    from the profiles alone, so a schedule can be replayed any number of
    times with identical results.  Events with equal scheduled times keep
    population order.

    Args:
        populations: Scenario/profile pairs to schedule.
    """

    def __init__(self, populations: Sequence[Population]) -> None:
        self._populations = tuple(populations)

    @property
    def total_users(self) -> int:
        """Return the number of start events the schedule will produce."""
        return sum(p.profile.total_users for p in self._populations)

    @property
    def duration(self) -> float:
        """Return the offset at which the longest profile ends."""
        return max((p.profile.duration for p in self._populations), default=0.0)

    def iter_events(self) -> Iterator[StartEvent]:
        """Yield start events in non-decreasing scheduled time.

        Yields:
            A StartEvent per scheduled virtual user.
        """
        streams = [
            _tag(population.profile, index, population.scenario.name)
            for index, population in enumerate(self._populations)
        ]
        for user_id, (offset, _index, name) in enumerate(heapq.merge(*streams)):
            yield StartEvent(virtual_user_id=user_id, scheduled_time=offset, scenario_name=name)


def _tag(
    profile: InjectionProfile, index: int, name: str
) -> Iterator[tuple[float, int, str]]:
    for offset in profile.iter_offsets():
        yield (offset, index, name)


def schedule(profile: InjectionProfile, scenario_name: str = "") -> Iterator[StartEvent]:
    """Return the start events for a single injection profile.

    Args:
        profile: The profile to expand.
        scenario_name: Scenario name stamped on each event.

    Returns:
        A lazy iterator of StartEvent, ordered by scheduled time.
    """
    for user_id, offset in enumerate(profile.iter_offsets()):
        yield StartEvent(virtual_user_id=user_id, scheduled_time=offset, scenario_name=scenario_name)
