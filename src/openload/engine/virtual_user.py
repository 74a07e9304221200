"""Sequential execution of one scenario by one virtual user."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Protocol

from openload._internal.logging import get_logger
from openload.dsl.scenario import Check, Pause, Request
from openload.engine import check_engine
from openload.engine.executor import TransportError
from openload.metrics.models import RunStatus, VirtualUserResult

if TYPE_CHECKING:
    from openload.dsl.scenario import Scenario
    from openload.engine.executor import RequestMetric, Response
    from openload.metrics.models import CheckResult

logger = get_logger("engine.virtual_user")


class Executor(Protocol):
    """Anything that can send a Request and return a response or error."""

    async def execute(
        self,
        request: Request,
        timeout: float | None = None,
    ) -> Response | TransportError:
        """Send *request* once."""
        ...


class VirtualUserRun:
    """One virtual user working through a scenario's steps in order.

    A Request step's response is the subject of every Check that follows it
    until the next Request. When a request produces a ``TransportError``,
    those checks fail with ``"no response"`` and the user carries on with
    the next step. Nothing but the final result leaves :meth:`execute`:
    cancellation finalizes the run as CANCELLED and an unexpected error
    finalizes it as FAILED.

    The run keeps its own step cursor, check results and request metrics,
    so the engine can finalize it from partial state if the task running
    it never gets to report.

    Attributes:
        user_id: Virtual user identifier.
        scenario: The scenario being executed.
        scheduled_time: Offset at which the user was due to start.
    """

    def __init__(
        self,
        user_id: int,
        scenario: Scenario,
        *,
        scheduled_time: float = 0.0,
        clock_origin: float | None = None,
    ) -> None:
        """Initialize the run.

        Args:
            user_id: Virtual user identifier.
            scenario: The scenario to execute.
            scheduled_time: Offset at which the user was due to start.
            clock_origin: Monotonic time the engine run began; offsets are
                measured from it. Defaults to now.
        """
        self.user_id = user_id
        self.scenario = scenario
        self.scheduled_time = scheduled_time
        self._clock_origin = clock_origin if clock_origin is not None else time.monotonic()

        self._checks: list[CheckResult] = []
        self._requests: list[RequestMetric] = []
        self._steps_executed = 0
        self._had_failure = False
        self._started: float | None = None
        self._result: VirtualUserResult | None = None

    @property
    def result(self) -> VirtualUserResult | None:
        """Return the final result, or None while the run is unfinished."""
        return self._result

    def record_metric(self, metric: RequestMetric) -> None:
        """Store a request metric; passed to the executor as its callback."""
        self._requests.append(metric)

    async def execute(self, executor: Executor) -> VirtualUserResult:
        """Run every step and return the final result.

        Args:
            executor: Sends this user's requests.

        Returns:
            The VirtualUserResult; never raises.
        """
        self._started = time.monotonic()
        response: Response | None = None
        context = {"scenario": self.scenario.name, "user_id": self.user_id}

        try:
            for index, step in enumerate(self.scenario.steps):
                if isinstance(step, Request):
                    outcome = await executor.execute(step)
                    if isinstance(outcome, TransportError):
                        self._had_failure = True
                        response = None
                        logger.debug(
                            "User %d: %s %s failed (%s)",
                            self.user_id,
                            step.method,
                            step.url,
                            outcome.kind.value,
                            extra={**context, "step_index": index},
                        )
                    else:
                        response = outcome
                elif isinstance(step, Check):
                    verdict = check_engine.evaluate(step.predicate, response, step_index=index)
                    if not verdict.passed:
                        self._had_failure = True
                    self._checks.append(verdict)
                elif isinstance(step, Pause):
                    await asyncio.sleep(step.duration)
                self._steps_executed = index + 1
        except asyncio.CancelledError:
            logger.debug(
                "User %d cancelled after %d steps",
                self.user_id,
                self._steps_executed,
                extra=context,
            )
            return self.finalize(RunStatus.CANCELLED)
        except Exception as exc:
            logger.warning(
                "User %d crashed in scenario %s",
                self.user_id,
                self.scenario.name,
                exc_info=True,
                extra={**context, "step_index": self._steps_executed},
            )
            return self.finalize(RunStatus.FAILED, error=f"{type(exc).__name__}: {exc}")

        status = RunStatus.FAILED if self._had_failure else RunStatus.COMPLETED
        return self.finalize(status)

    def finalize(self, status: RunStatus, error: str | None = None) -> VirtualUserResult:
        """Freeze the run's current state into its result.

        Only the first call has an effect; later calls return the result
        already produced.

        Args:
            status: Final status to record.
            error: Unexpected error text, if any.

        Returns:
            The VirtualUserResult.
        """
        if self._result is not None:
            return self._result

        now = time.monotonic()
        if self._started is None:
            started_at = self.scheduled_time
            duration = 0.0
        else:
            started_at = self._started - self._clock_origin
            duration = now - self._started

        self._result = VirtualUserResult(
            user_id=self.user_id,
            scenario_name=self.scenario.name,
            status=status,
            checks=tuple(self._checks),
            requests=tuple(self._requests),
            scheduled_time=self.scheduled_time,
            started_at=started_at,
            duration_seconds=duration,
            steps_executed=self._steps_executed,
            error=error,
        )
        return self._result
