"""Execute one test module's cases against the plan snapshot."""

import asyncio
import logging
import threading
import time

from infratest.plan_runner.models.assertion_result import AssertionResult
from infratest.plan_runner.models.test_definition import TestCase, TestModule
from infratest.plan_runner.models.test_result import CaseResult, ModuleResult
from infratest.plan_runner.plan_store import PlanSnapshot

logger = logging.getLogger(__name__)


class ModuleProgress:
    """Case results a module has produced so far.

    The engine keeps one per scheduled module so that a module cut short by
    a module or run timeout still reports the cases it finished.
    """

    def __init__(self, module: TestModule) -> None:
        """Start tracking a module that has not run yet."""
        self.module = module
        self.completed: list[CaseResult] = []
        self.result: ModuleResult | None = None
        self._started: float | None = None

    def start(self) -> None:
        """Mark the module as running."""
        self._started = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Seconds since the module started, zero if it never did."""
        if self._started is None:
            return 0.0
        return time.monotonic() - self._started

    def record(self, case_result: CaseResult) -> None:
        """Store a finished case result."""
        self.completed.append(case_result)

    def finish(self) -> ModuleResult:
        """Freeze the result of a module that ran every case."""
        self.result = ModuleResult(
            name=self.module.name,
            cases=self.completed,
            declared_cases=len(self.module.cases),
            duration=self.elapsed,
        )
        return self.result

    def finish_incomplete(self, reason: str) -> ModuleResult:
        """Freeze the result, marking every unfinished case as an error."""
        done = len(self.completed)
        pending = [
            CaseResult.errored(case.name, reason) for case in self.module.cases[done:]
        ]
        self.result = ModuleResult(
            name=self.module.name,
            cases=[*self.completed, *pending],
            declared_cases=len(self.module.cases),
            duration=self.elapsed,
            error=reason,
        )
        return self.result


def _start_case(case: TestCase, snapshot: PlanSnapshot) -> asyncio.Future:
    """Start ``case`` on its own daemon thread; the future gets its assertions.

    A hung case never shares a worker with later cases and never keeps the
    process alive after the run reports.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def settle(
        outcome: list[AssertionResult] | None, error: BaseException | None
    ) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(outcome)

    def target() -> None:
        try:
            outcome = list(case.run(snapshot))
        except BaseException as e:
            outcome, error = None, e
        else:
            error = None
        try:
            loop.call_soon_threadsafe(settle, outcome, error)
        except RuntimeError:
            logger.debug(f"Case '{case.name}' finished after its run ended")

    threading.Thread(target=target, name=f"case-{case.name}", daemon=True).start()
    return future


async def run_case(
    case: TestCase, snapshot: PlanSnapshot, timeout: float | None = None
) -> CaseResult:
    """Run a single case on a dedicated thread.

    A case that raises or outlives ``timeout`` becomes an ``error`` result;
    neither ever propagates to the caller.
    """
    start = time.monotonic()
    try:
        assertion_results = await asyncio.wait_for(
            _start_case(case, snapshot), timeout=timeout
        )
    except TimeoutError:
        logger.error(f"Case '{case.name}' timed out after {timeout}s")
        return CaseResult.errored(
            case.name,
            f"case timeout after {timeout}s",
            duration=time.monotonic() - start,
        )
    except Exception as e:
        logger.exception(f"Case '{case.name}' raised")
        return CaseResult.errored(
            case.name,
            f"{type(e).__name__}: {e}",
            duration=time.monotonic() - start,
        )
    return CaseResult.from_assertions(
        case.name, assertion_results, time.monotonic() - start
    )


async def run_module(
    module: TestModule,
    snapshot: PlanSnapshot,
    *,
    case_timeout: float | None = None,
    module_timeout: float | None = None,
    progress: ModuleProgress | None = None,
) -> ModuleResult:
    """Run a module's cases in declaration order.

    Args:
        module: Module to execute
        snapshot: Plan snapshot shared by every module of the run
        case_timeout: Seconds a single case may take
        module_timeout: Seconds the whole module may take
        progress: Tracker to record into, owned by the caller

    Returns:
        Module result with one case result per declared case

    """
    progress = progress or ModuleProgress(module)
    progress.start()
    logger.info(f"Running module '{module.name}' ({len(module.cases)} cases)")

    try:
        await asyncio.wait_for(
            _run_cases(module, snapshot, case_timeout, progress),
            timeout=module_timeout,
        )
    except TimeoutError:
        logger.error(f"Module '{module.name}' timed out after {module_timeout}s")
        return progress.finish_incomplete(f"module timeout after {module_timeout}s")

    result = progress.finish()
    logger.info(
        f"Module '{module.name}' finished: {result.passed}/{result.total} passed "
        f"({result.duration:.2f}s)"
    )
    return result


async def _run_cases(
    module: TestModule,
    snapshot: PlanSnapshot,
    case_timeout: float | None,
    progress: ModuleProgress,
) -> None:
    for case in module.cases:
        case_result = await run_case(case, snapshot, case_timeout)
        logger.debug(f"{module.name}/{case.name}: {case_result.status}")
        progress.record(case_result)
