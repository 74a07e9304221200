"""Load engine: dispatches virtual users on schedule and reports one summary."""

from __future__ import annotations

import asyncio
import functools
import signal
import sys
import threading
import time
from typing import TYPE_CHECKING

from openload._internal.config import EngineConfig
from openload._internal.errors import EngineFatalError, ScenarioError
from openload._internal.logging import get_logger, setup_logging
from openload.dsl.scenario import Population
from openload.engine.executor import RequestExecutor
from openload.engine.scheduler import Scheduler
from openload.engine.virtual_user import VirtualUserRun
from openload.metrics.aggregator import ResultAggregator
from openload.metrics.models import RunStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from contextlib import AbstractAsyncContextManager

    from openload.dsl.scenario import Scenario
    from openload.engine.executor import RequestMetric
    from openload.engine.virtual_user import Executor
    from openload.injection.profile import InjectionProfile
    from openload.metrics.models import RunSummary, VirtualUserResult

    ExecutorFactory = Callable[
        [Callable[[RequestMetric], None]], AbstractAsyncContextManager[Executor]
    ]

logger = get_logger("engine.load_engine")


def _loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop factory if available.

    Falls back to the default asyncio event loop on Windows or if uvloop is
    not installed.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop


class LoadEngine:
    """Runs scenarios against an open injection model.

    Every start event produced by the injection profiles becomes one
    virtual user, dispatched at its scheduled offset regardless of how many
    earlier users are still running. At most ``max_workers`` users run at
    once; starts beyond that wait for a free worker and then run late.

    A run ends when every scheduled user has finished, when the overall
    timeout expires, or when :meth:`stop` is called (directly or through
    SIGINT/SIGTERM). Timeouts and stops abandon the remaining starts and
    cancel in-flight users; users that do not wind down within the grace
    period are reported as cancelled from their partial state. Every
    dispatched user appears in the summary exactly once. An engine runs
    one load run at a time.

    Example::

        engine = LoadEngine(EngineConfig(max_workers=50))
        summary = engine.run(basic, inject_open(AtOnce(1)))
        assert summary.failed_checks == 0

    Attributes:
        config: Runtime configuration.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        executor_factory: ExecutorFactory | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Runtime configuration. Defaults to ``EngineConfig()``.
            executor_factory: Builds the request executor of one virtual
                user from its metric callback. Defaults to a
                ``RequestExecutor`` configured from *config*.
        """
        self.config = config or EngineConfig()
        self._executor_factory = executor_factory or self._default_executor
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._state_lock = threading.Lock()
        self._stop_pending = False

    # -- entry points ---------------------------------------------------------

    def run(self, scenario: Scenario, profile: InjectionProfile) -> RunSummary:
        """Run one scenario to completion in a fresh event loop.

        Args:
            scenario: The scenario every virtual user executes.
            profile: When virtual users start.

        Returns:
            The RunSummary.

        Raises:
            EngineFatalError: If the run was stopped or dispatch failed.
        """
        return self.run_populations([Population(scenario, profile)])

    def run_populations(self, populations: Iterable[Population]) -> RunSummary:
        """Run several scenario/profile pairs side by side in a fresh event loop.

        Sets up logging at the configured level and uses uvloop where
        available.

        Args:
            populations: Scenario/profile pairs; scenario names must be unique.

        Returns:
            The RunSummary.

        Raises:
            ScenarioError: If the populations are empty or names collide.
            EngineFatalError: If the run was stopped or dispatch failed.
            RuntimeError: If this engine is already running.
        """
        setup_logging(self.config.log_level)
        with asyncio.Runner(loop_factory=_loop_factory()) as runner:
            return runner.run(self.run_populations_async(populations))

    async def run_async(self, scenario: Scenario, profile: InjectionProfile) -> RunSummary:
        """Coroutine form of :meth:`run` for callers that own the event loop."""
        return await self.run_populations_async([Population(scenario, profile)])

    async def run_populations_async(self, populations: Iterable[Population]) -> RunSummary:
        """Coroutine form of :meth:`run_populations`."""
        pops = tuple(populations)
        scenarios = _index_scenarios(pops)
        scheduler = Scheduler(pops)

        with self._state_lock:
            if self._loop is not None:
                msg = "LoadEngine is already running"
                raise RuntimeError(msg)
            self._loop = asyncio.get_running_loop()
            self._stop_event = asyncio.Event()
            if self._stop_pending:
                self._stop_pending = False
                self._stop_event.set()

        logger.info(
            "Starting load run: scenarios=%s, users=%d, max_workers=%d",
            ", ".join(scenarios),
            scheduler.total_users,
            self.config.max_workers,
        )
        for pop in pops:
            logger.debug("Profile for %s: %s", pop.scenario.name, pop.profile.describe())

        aggregator = ResultAggregator()
        aggregator.start()
        runs: dict[asyncio.Task[VirtualUserResult], VirtualUserRun] = {}
        reported: set[int] = set()
        origin = time.monotonic()

        dispatcher = asyncio.create_task(
            self._dispatch(scheduler, scenarios, runs, reported, aggregator, origin),
            name="openload-dispatcher",
        )
        stop_waiter = asyncio.create_task(self._stop_event.wait(), name="openload-stop")

        timed_out = False
        interrupted = False
        fatal: BaseException | None = None

        if self.config.install_signal_handlers:
            self._install_signal_handlers()
        try:
            done, _pending = await asyncio.wait(
                {dispatcher, stop_waiter},
                timeout=self.config.overall_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if dispatcher in done:
                fatal = dispatcher.exception()
            elif stop_waiter in done:
                interrupted = True
            else:
                timed_out = True
                logger.warning(
                    "Overall timeout of %.1fs reached, cancelling in-flight users",
                    self.config.overall_timeout,
                )
        finally:
            if self.config.install_signal_handlers:
                self._remove_signal_handlers()
            stop_waiter.cancel()
            if not dispatcher.done():
                dispatcher.cancel()
                await asyncio.gather(dispatcher, return_exceptions=True)
            await self._cancel_runs(runs)
            for run in runs.values():
                # Still unreported after the grace period.
                self._report(run, run.finalize(RunStatus.CANCELLED), reported, aggregator)
            await aggregator.stop()
            with self._state_lock:
                self._loop = None
                self._stop_event = None

        summary = aggregator.build_summary(
            scheduled_users=scheduler.total_users,
            duration_seconds=time.monotonic() - origin,
            timed_out=timed_out,
            interrupted=interrupted,
        )
        logger.info(
            "Load run finished: runs=%d (completed=%d, failed=%d, cancelled=%d), "
            "checks passed=%d failed=%d, p95=%.1fms, duration=%.1fs",
            summary.total_runs,
            summary.completed_runs,
            summary.failed_runs,
            summary.cancelled_runs,
            summary.passed_checks,
            summary.failed_checks,
            summary.response_times.p95,
            summary.duration_seconds,
        )

        if fatal is not None:
            logger.error("Dispatch failed: %s", fatal, exc_info=fatal)
            msg = f"load run aborted: {type(fatal).__name__}: {fatal}"
            raise EngineFatalError(msg, summary=summary) from fatal
        if interrupted:
            msg = f"load run stopped after {summary.total_runs} of {summary.scheduled_users} users"
            raise EngineFatalError(msg, summary=summary)
        return summary

    def stop(self) -> None:
        """Request an external stop of the current run.

        Safe to call from any thread. The run raises ``EngineFatalError``
        carrying the partial summary. A stop requested while no run is
        active is held and stops the next run as soon as it starts.
        """
        with self._state_lock:
            if self._loop is None or self._stop_event is None:
                logger.info("Stop requested before the run started")
                self._stop_pending = True
                return
            logger.info("Stop requested, cancelling load run")
            self._loop.call_soon_threadsafe(self._stop_event.set)

    # -- dispatch -------------------------------------------------------------

    async def _dispatch(
        self,
        scheduler: Scheduler,
        scenarios: dict[str, Scenario],
        runs: dict[asyncio.Task[VirtualUserResult], VirtualUserRun],
        reported: set[int],
        aggregator: ResultAggregator,
        origin: float,
    ) -> None:
        """Start a virtual user for every event, then wait for all of them."""
        workers = asyncio.Semaphore(self.config.max_workers)

        for event in scheduler.iter_events():
            delay = origin + event.scheduled_time - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            await workers.acquire()

            run = VirtualUserRun(
                event.virtual_user_id,
                scenarios[event.scenario_name],
                scheduled_time=event.scheduled_time,
                clock_origin=origin,
            )
            task = asyncio.create_task(
                self._run_user(run),
                name=f"virtual-user-{event.virtual_user_id}",
            )
            runs[task] = run
            task.add_done_callback(
                functools.partial(
                    self._on_run_done,
                    run=run,
                    workers=workers,
                    reported=reported,
                    aggregator=aggregator,
                )
            )

        logger.debug("All %d users dispatched", len(runs))
        if runs:
            await asyncio.wait(list(runs))

    async def _run_user(self, run: VirtualUserRun) -> VirtualUserResult:
        async with self._executor_factory(run.record_metric) as executor:
            return await run.execute(executor)

    def _on_run_done(
        self,
        task: asyncio.Task[VirtualUserResult],
        *,
        run: VirtualUserRun,
        workers: asyncio.Semaphore,
        reported: set[int],
        aggregator: ResultAggregator,
    ) -> None:
        workers.release()
        if task.cancelled():
            result = run.finalize(RunStatus.CANCELLED)
        elif (exc := task.exception()) is not None:
            logger.warning("User %d task failed: %s", run.user_id, exc)
            result = run.finalize(RunStatus.FAILED, error=f"{type(exc).__name__}: {exc}")
        else:
            result = task.result()
        self._report(run, result, reported, aggregator)

    @staticmethod
    def _report(
        run: VirtualUserRun,
        result: VirtualUserResult,
        reported: set[int],
        aggregator: ResultAggregator,
    ) -> None:
        if run.user_id in reported:
            return
        reported.add(run.user_id)
        aggregator.submit(result)

    async def _cancel_runs(self, runs: dict[asyncio.Task[VirtualUserResult], VirtualUserRun]) -> None:
        """Cancel in-flight users and wait up to the grace period for them."""
        pending = [task for task in runs if not task.done()]
        if not pending:
            return

        logger.info("Cancelling %d in-flight users", len(pending))
        for task in pending:
            task.cancel()

        _done, still_pending = await asyncio.wait(pending, timeout=self.config.grace_period)
        if still_pending:
            logger.warning(
                "%d users did not finish within the %.1fs grace period",
                len(still_pending),
                self.config.grace_period,
            )

    def _default_executor(
        self, metric_callback: Callable[[RequestMetric], None]
    ) -> RequestExecutor:
        return RequestExecutor(
            default_headers=self.config.default_headers,
            metric_callback=metric_callback,
            timeout=self.config.request_timeout,
            pool_size=self.config.connection_pool_size,
        )

    # -- signals --------------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers that stop the run."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, stopping load run")
            if self._stop_event is not None:
                self._stop_event.set()

        if sys.platform != "win32":
            try:
                loop.add_signal_handler(signal.SIGINT, _signal_handler)
                loop.add_signal_handler(signal.SIGTERM, _signal_handler)
            except RuntimeError:
                # Not the main thread.
                logger.debug("Signal handlers not installed outside the main thread")
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))
            signal.signal(signal.SIGTERM, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)


def _index_scenarios(populations: Sequence[Population]) -> dict[str, Scenario]:
    """Map scenario names to scenarios, rejecting empty input and name clashes."""
    if not populations:
        msg = "at least one population is required"
        raise ScenarioError(msg)

    scenarios: dict[str, Scenario] = {}
    for pop in populations:
        if not isinstance(pop, Population):
            msg = f"expected Population, got: {type(pop).__name__}"
            raise ScenarioError(msg)
        existing = scenarios.get(pop.scenario.name)
        if existing is not None and existing is not pop.scenario:
            msg = f"duplicate scenario name: {pop.scenario.name!r}"
            raise ScenarioError(msg)
        scenarios[pop.scenario.name] = pop.scenario
    return scenarios
