"""Tests for ResultAggregator."""

from __future__ import annotations

import asyncio
import time

import pytest

from openload.engine.executor import RequestMetric, TransportErrorKind
from openload.metrics.aggregator import ResultAggregator
from openload.metrics.models import CheckResult, RunStatus, VirtualUserResult


def _make_metric(
    name: str = "Test",
    latency_ms: float = 10.0,
    status_code: int = 200,
    error_kind: TransportErrorKind | None = None,
) -> RequestMetric:
    return RequestMetric(
        timestamp=time.monotonic(),
        name=name,
        method="GET",
        url=f"http://localhost/{name.lower()}",
        status_code=status_code,
        latency_ms=latency_ms,
        content_length=100,
        error=f"{error_kind.value} happened" if error_kind else None,
        error_kind=error_kind,
    )


def _check(passed: bool, message: str = "") -> CheckResult:
    return CheckResult(
        step_index=1,
        passed=passed,
        actual_value=200 if passed else 404,
        expected_value=200,
        message=message,
    )


def _make_result(
    user_id: int,
    status: RunStatus = RunStatus.COMPLETED,
    scenario_name: str = "Basic Example",
    checks: tuple[CheckResult, ...] = (),
    requests: tuple[RequestMetric, ...] = (),
    duration_seconds: float = 0.1,
) -> VirtualUserResult:
    return VirtualUserResult(
        user_id=user_id,
        scenario_name=scenario_name,
        status=status,
        checks=checks,
        requests=requests,
        duration_seconds=duration_seconds,
    )


class TestRecord:
    def test_counts_by_status(self):
        agg = ResultAggregator()
        agg.record(_make_result(0, RunStatus.COMPLETED))
        agg.record(_make_result(1, RunStatus.FAILED))
        agg.record(_make_result(2, RunStatus.CANCELLED))
        agg.record(_make_result(3, RunStatus.COMPLETED))

        summary = agg.build_summary(scheduled_users=4)
        assert summary.total_runs == 4
        assert summary.completed_runs == 2
        assert summary.failed_runs == 1
        assert summary.cancelled_runs == 1
        assert summary.undispatched_users == 0

    def test_check_totals(self):
        agg = ResultAggregator()
        agg.record(_make_result(0, checks=(_check(True), _check(True))))
        agg.record(
            _make_result(
                1,
                RunStatus.FAILED,
                checks=(_check(True), _check(False, "expected status 200, got 404")),
            )
        )
        summary = agg.build_summary()
        assert summary.passed_checks == 3
        assert summary.failed_checks == 1
        assert summary.check_pass_rate == pytest.approx(0.75)
        assert summary.failure_messages() == ["expected status 200, got 404"]

    def test_request_metrics(self):
        agg = ResultAggregator()
        agg.record(
            _make_result(
                0,
                requests=(
                    _make_metric("Get README.md", latency_ms=10.0),
                    _make_metric("Get README.md", latency_ms=30.0, status_code=500),
                    _make_metric(
                        "Get README.md",
                        latency_ms=5.0,
                        status_code=0,
                        error_kind=TransportErrorKind.CONNECTION_REFUSED,
                    ),
                ),
            )
        )
        summary = agg.build_summary()
        assert summary.total_requests == 3
        assert summary.failed_requests == 1
        assert summary.errors_by_kind == {"connection_refused": 1}

        endpoint = summary.endpoints["Get README.md"]
        assert endpoint.request_count == 3
        assert endpoint.error_count == 2
        assert endpoint.error_rate == pytest.approx(2 / 3)
        # Transport errors have no latency worth recording
        assert endpoint.response_times.count == 2
        assert summary.response_times.count == 2

    def test_scenario_breakdown(self):
        agg = ResultAggregator()
        agg.record(_make_result(0, scenario_name="a", duration_seconds=1.0))
        agg.record(_make_result(1, RunStatus.FAILED, scenario_name="a", duration_seconds=3.0))
        agg.record(_make_result(2, scenario_name="b"))

        summary = agg.build_summary()
        a = summary.scenarios["a"]
        assert a.total_runs == 2
        assert a.completed_runs == 1
        assert a.failed_runs == 1
        assert a.mean_run_seconds == pytest.approx(2.0)
        assert summary.scenarios["b"].total_runs == 1

    def test_undispatched_and_flags(self):
        agg = ResultAggregator()
        agg.record(_make_result(0))
        summary = agg.build_summary(scheduled_users=10, timed_out=True, duration_seconds=2.0)
        assert summary.undispatched_users == 9
        assert summary.timed_out
        assert not summary.interrupted
        assert summary.duration_seconds == 2.0

    def test_runs_sorted_by_user_id(self):
        agg = ResultAggregator()
        for user_id in (3, 0, 2, 1):
            agg.record(_make_result(user_id))
        summary = agg.build_summary()
        assert [run.user_id for run in summary.runs] == [0, 1, 2, 3]

    def test_empty_summary(self):
        summary = ResultAggregator().build_summary()
        assert summary.total_runs == 0
        assert summary.check_pass_rate == 1.0
        assert summary.response_times.count == 0


class TestConsumerTask:
    async def test_submit_then_stop_drains_queue(self):
        agg = ResultAggregator()
        agg.start()
        for user_id in range(50):
            agg.submit(_make_result(user_id, checks=(_check(True),)))
        await agg.stop()

        assert agg.recorded_count == 50
        assert agg.build_summary().passed_checks == 50

    async def test_concurrent_submitters(self):
        """Results submitted from many tasks are all counted exactly once."""
        agg = ResultAggregator()
        agg.start()

        async def _submit(user_id: int) -> None:
            await asyncio.sleep(0)
            agg.submit(_make_result(user_id, checks=(_check(user_id % 2 == 0),)))

        await asyncio.gather(*(_submit(i) for i in range(200)))
        await agg.stop()

        summary = agg.build_summary(scheduled_users=200)
        assert summary.total_runs == 200
        assert summary.passed_checks == 100
        assert summary.failed_checks == 100

    async def test_stop_without_start(self):
        agg = ResultAggregator()
        await agg.stop()
        assert agg.recorded_count == 0
