"""Result and summary dataclasses for openload."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# NOTE: RequestMetric lives in engine/executor.py. Imported here for
# re-export convenience; consumers can import from either location.
from openload.engine.executor import RequestMetric

__all__ = [
    "CheckResult",
    "EndpointMetrics",
    "RequestMetric",
    "ResponseTimeStats",
    "RunStatus",
    "RunSummary",
    "ScenarioBreakdown",
    "VirtualUserResult",
]


class RunStatus(Enum):
    """Final state of one virtual user's run."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CheckResult:
    """Verdict of one check against one response.

    Attributes:
        step_index: Index of the Check step within its scenario.
        passed: Whether the check held.
        actual_value: Value extracted from the response (None without one).
        expected_value: Value the check was looking for.
        message: Empty on success, otherwise why the check failed.
    """

    step_index: int
    passed: bool
    actual_value: object
    expected_value: object
    message: str = ""


@dataclass(frozen=True)
class VirtualUserResult:
    """Outcome of a single virtual user executing a scenario.

    Attributes:
        user_id: Virtual user identifier, unique within an engine run.
        scenario_name: Name of the scenario the user executed.
        status: Completed, failed or cancelled.
        checks: Check verdicts in step order.
        requests: Metrics of every request attempt in step order.
        scheduled_time: Offset at which the user was due to start.
        started_at: Offset at which the user actually started.
        duration_seconds: Wall-clock time the user ran for.
        steps_executed: Number of steps the user got through.
        error: Unexpected error text, if the run crashed.
    """

    user_id: int
    scenario_name: str
    status: RunStatus
    checks: tuple[CheckResult, ...] = ()
    requests: tuple[RequestMetric, ...] = ()
    scheduled_time: float = 0.0
    started_at: float = 0.0
    duration_seconds: float = 0.0
    steps_executed: int = 0
    error: str | None = None

    @property
    def passed_checks(self) -> int:
        """Return the number of checks that held."""
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed_checks(self) -> int:
        """Return the number of checks that failed."""
        return sum(1 for c in self.checks if not c.passed)


@dataclass(frozen=True)
class ResponseTimeStats:
    """Response time distribution in milliseconds."""

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass(frozen=True)
class EndpointMetrics:
    """Aggregated metrics for a single request name.

    Attributes:
        name: Logical request name (e.g., "Get README.md").
        request_count: Total number of attempts.
        error_count: Attempts that got no response or a status >= 400.
        error_rate: Fraction of attempts that errored (0.0 to 1.0).
        response_times: Latency distribution of the attempts.
    """

    name: str
    request_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    response_times: ResponseTimeStats = field(default_factory=ResponseTimeStats)


@dataclass(frozen=True)
class ScenarioBreakdown:
    """Per-scenario run and check counts.

    Attributes:
        name: Scenario name.
        total_runs: Virtual users dispatched for this scenario.
        completed_runs: Runs that finished with every check passing.
        failed_runs: Runs with a transport error, failed check or crash.
        cancelled_runs: Runs stopped by the engine.
        passed_checks: Checks that held.
        failed_checks: Checks that failed.
        mean_run_seconds: Mean virtual user duration.
        p95_run_seconds: 95th percentile virtual user duration.
    """

    name: str
    total_runs: int = 0
    completed_runs: int = 0
    failed_runs: int = 0
    cancelled_runs: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    mean_run_seconds: float = 0.0
    p95_run_seconds: float = 0.0


@dataclass(frozen=True)
class RunSummary:
    """Read-only aggregate of every virtual user an engine run dispatched.

    Produced once by the aggregator at the end of a run. Counts always
    reflect work that was actually attempted: ``total_runs`` equals
    ``completed_runs + failed_runs + cancelled_runs`` and ``len(runs)``.

    Attributes:
        total_runs: Virtual users dispatched.
        completed_runs: Runs that completed cleanly.
        failed_runs: Runs that recorded a failure.
        cancelled_runs: Runs stopped by timeout or external stop.
        passed_checks: Checks that held, across all runs.
        failed_checks: Checks that failed, across all runs.
        total_requests: Request attempts, across all runs.
        failed_requests: Attempts that ended in a transport error.
        response_times: Latency distribution of requests that got a response.
        scenarios: Per-scenario breakdown keyed by scenario name.
        endpoints: Per-request-name metrics keyed by request name.
        errors_by_kind: Transport error counts keyed by kind value.
        scheduled_users: Start events the profiles called for.
        undispatched_users: Scheduled starts abandoned by timeout or stop.
        timed_out: Whether the overall timeout ended the run.
        interrupted: Whether an external stop ended the run.
        duration_seconds: Wall-clock duration of the engine run.
        runs: Every dispatched run's result, ordered by user id.
    """

    total_runs: int = 0
    completed_runs: int = 0
    failed_runs: int = 0
    cancelled_runs: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    total_requests: int = 0
    failed_requests: int = 0
    response_times: ResponseTimeStats = field(default_factory=ResponseTimeStats)
    scenarios: dict[str, ScenarioBreakdown] = field(default_factory=dict)
    endpoints: dict[str, EndpointMetrics] = field(default_factory=dict)
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    scheduled_users: int = 0
    undispatched_users: int = 0
    timed_out: bool = False
    interrupted: bool = False
    duration_seconds: float = 0.0
    runs: tuple[VirtualUserResult, ...] = ()

    @property
    def check_pass_rate(self) -> float:
        """Return the fraction of checks that held (1.0 with no checks)."""
        total = self.passed_checks + self.failed_checks
        return self.passed_checks / total if total else 1.0

    def failure_messages(self) -> list[str]:
        """Return the distinct failed-check messages in first-seen order."""
        seen: dict[str, None] = {}
        for run in self.runs:
            for check in run.checks:
                if not check.passed:
                    seen.setdefault(check.message, None)
        return list(seen)
