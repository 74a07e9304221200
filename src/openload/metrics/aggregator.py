"""Single-owner aggregation of virtual user results.

The ``ResultAggregator`` is the only writer of run totals. Finished runs
are submitted to an ``asyncio.Queue`` and folded into the totals by one
consumer task, so updates are applied one at a time in arrival order and
the final counts are exact regardless of how runs interleave.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING

import numpy as np

from openload._internal.logging import get_logger
from openload.metrics.histogram import LatencyHistogram
from openload.metrics.models import (
    EndpointMetrics,
    ResponseTimeStats,
    RunStatus,
    RunSummary,
    ScenarioBreakdown,
    VirtualUserResult,
)

if TYPE_CHECKING:
    from openload.engine.executor import RequestMetric

logger = get_logger("metrics.aggregator")

# Queue marker telling the consumer task to exit.
_STOP = None


class _ScenarioTotals:
    """Mutable per-scenario counters owned by the aggregator."""

    def __init__(self) -> None:
        self.runs_by_status: dict[RunStatus, int] = defaultdict(int)
        self.passed_checks = 0
        self.failed_checks = 0
        self.run_durations: list[float] = []

    def freeze(self, name: str) -> ScenarioBreakdown:
        mean_run = 0.0
        p95_run = 0.0
        if self.run_durations:
            durations = np.array(self.run_durations, dtype=np.float64)
            mean_run = float(np.mean(durations))
            p95_run = float(np.percentile(durations, 95.0))
        return ScenarioBreakdown(
            name=name,
            total_runs=sum(self.runs_by_status.values()),
            completed_runs=self.runs_by_status[RunStatus.COMPLETED],
            failed_runs=self.runs_by_status[RunStatus.FAILED],
            cancelled_runs=self.runs_by_status[RunStatus.CANCELLED],
            passed_checks=self.passed_checks,
            failed_checks=self.failed_checks,
            mean_run_seconds=mean_run,
            p95_run_seconds=p95_run,
        )


class ResultAggregator:
    """Folds ``VirtualUserResult`` objects into a ``RunSummary``.

    Call :meth:`start` inside a running event loop, :meth:`submit` from
    anywhere on that loop (it never blocks), and :meth:`stop` once every
    run has been submitted. :meth:`build_summary` then returns an immutable
    snapshot; nothing outside the aggregator ever sees partial totals.

    :meth:`record` applies a result synchronously and is what the consumer
    task calls for each queued result.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[VirtualUserResult | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

        self._runs: list[VirtualUserResult] = []
        self._runs_by_status: dict[RunStatus, int] = defaultdict(int)
        self._passed_checks = 0
        self._failed_checks = 0
        self._total_requests = 0
        self._failed_requests = 0
        self._errors_by_kind: dict[str, int] = defaultdict(int)
        self._scenarios: dict[str, _ScenarioTotals] = {}
        self._endpoint_hists: dict[str, LatencyHistogram] = {}
        self._endpoint_counts: dict[str, int] = defaultdict(int)
        self._endpoint_errors: dict[str, int] = defaultdict(int)

    @property
    def recorded_count(self) -> int:
        """Return the number of results folded in so far."""
        return len(self._runs)

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        self._task = asyncio.create_task(self._run_loop(), name="openload-aggregator")
        logger.debug("Aggregator task started")

    def submit(self, result: VirtualUserResult) -> None:
        """Queue a finished run for aggregation."""
        self._queue.put_nowait(result)

    async def stop(self) -> None:
        """Drain every queued result and stop the consumer task."""
        if self._task is None:
            return
        self._queue.put_nowait(_STOP)
        await self._task
        self._task = None
        logger.debug("Aggregator task stopped after %d results", self.recorded_count)

    async def _run_loop(self) -> None:
        while True:
            result = await self._queue.get()
            if result is _STOP:
                break
            self.record(result)

    def record(self, result: VirtualUserResult) -> None:
        """Fold one run's result into the totals.

        Args:
            result: The finished run.
        """
        self._runs.append(result)
        self._runs_by_status[result.status] += 1

        totals = self._scenarios.get(result.scenario_name)
        if totals is None:
            totals = self._scenarios[result.scenario_name] = _ScenarioTotals()
        totals.runs_by_status[result.status] += 1
        totals.run_durations.append(result.duration_seconds)

        passed = result.passed_checks
        failed = result.failed_checks
        self._passed_checks += passed
        self._failed_checks += failed
        totals.passed_checks += passed
        totals.failed_checks += failed

        for metric in result.requests:
            self._record_request(metric)

    def _record_request(self, metric: RequestMetric) -> None:
        name = metric.name
        self._total_requests += 1
        self._endpoint_counts[name] += 1

        if metric.error_kind is not None:
            self._failed_requests += 1
            self._endpoint_errors[name] += 1
            self._errors_by_kind[metric.error_kind.value] += 1
            return

        if metric.status_code >= 400:
            self._endpoint_errors[name] += 1

        hist = self._endpoint_hists.get(name)
        if hist is None:
            hist = self._endpoint_hists[name] = LatencyHistogram()
        hist.record_ms(metric.latency_ms)

    def build_summary(
        self,
        *,
        scheduled_users: int = 0,
        duration_seconds: float = 0.0,
        timed_out: bool = False,
        interrupted: bool = False,
    ) -> RunSummary:
        """Return an immutable summary of everything recorded.

        Args:
            scheduled_users: Start events the profiles called for.
            duration_seconds: Wall-clock duration of the engine run.
            timed_out: Whether the overall timeout ended the run.
            interrupted: Whether an external stop ended the run.

        Returns:
            The RunSummary.
        """
        overall = LatencyHistogram()
        endpoints: dict[str, EndpointMetrics] = {}
        for name, count in self._endpoint_counts.items():
            hist = self._endpoint_hists.get(name)
            if hist is not None:
                overall.merge(hist)
            errors = self._endpoint_errors.get(name, 0)
            endpoints[name] = EndpointMetrics(
                name=name,
                request_count=count,
                error_count=errors,
                error_rate=errors / count if count > 0 else 0.0,
                response_times=hist.stats() if hist is not None else ResponseTimeStats(),
            )

        total_runs = len(self._runs)
        return RunSummary(
            total_runs=total_runs,
            completed_runs=self._runs_by_status[RunStatus.COMPLETED],
            failed_runs=self._runs_by_status[RunStatus.FAILED],
            cancelled_runs=self._runs_by_status[RunStatus.CANCELLED],
            passed_checks=self._passed_checks,
            failed_checks=self._failed_checks,
            total_requests=self._total_requests,
            failed_requests=self._failed_requests,
            response_times=overall.stats(),
            scenarios={name: t.freeze(name) for name, t in self._scenarios.items()},
            endpoints=endpoints,
            errors_by_kind=dict(self._errors_by_kind),
            scheduled_users=scheduled_users,
            undispatched_users=max(scheduled_users - total_runs, 0),
            timed_out=timed_out,
            interrupted=interrupted,
            duration_seconds=duration_seconds,
            runs=tuple(sorted(self._runs, key=lambda r: r.user_id)),
        )
