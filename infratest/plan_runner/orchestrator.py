"""Test orchestrator coordinating module execution for one run."""

import asyncio
import logging
import time
from collections.abc import Awaitable
from datetime import UTC, datetime
from enum import Enum

from infratest.plan_runner.models.run_config import RunConfig
from infratest.plan_runner.models.test_definition import TestModule
from infratest.plan_runner.models.test_result import ModuleResult, RunResult
from infratest.plan_runner.module_runner import ModuleProgress, run_module
from infratest.plan_runner.plan_store import PlanSnapshot, PlanStore
from infratest.plan_runner.registry import ModuleRegistry
from infratest.plan_runner.reporter import write_artifacts

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of a single run."""

    INITIALIZING = "initializing"
    LOADING = "loading"
    SCHEDULING = "scheduling"
    EXECUTING = "executing"
    AGGREGATING = "aggregating"
    REPORTING = "reporting"
    DONE = "done"


class TestOrchestrator:
    """Orchestrates one run of the selected test modules.

    Fatal setup problems (unknown module, unloadable plan) raise out of
    ``run`` before any case executes. Once execution starts every fault is
    captured as a result entry, so ``run`` always returns a finalized
    ``RunResult``.
    """

    __test__ = False

    def __init__(
        self,
        registry: ModuleRegistry,
        config: RunConfig,
        plan_store: PlanStore | None = None,
    ) -> None:
        """Initialize orchestrator for a registry and run configuration."""
        self.registry = registry
        self.config = config
        self.plan_store = plan_store or PlanStore(config.plan_path)
        self.state = RunState.INITIALIZING
        self.artifacts: list[str] = []

    def _transition(self, state: RunState) -> None:
        logger.debug(f"Run state: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> RunResult:
        """Run the selected modules and return the finalized result.

        Raises:
            ConfigurationError: If the module selection names an unknown module
            PlanLoadError: If the plan cannot be loaded

        """
        started_at = datetime.now(UTC)
        start = time.monotonic()

        logger.info("Orchestrator: Resolving module selection...")
        selected = self.registry.select(self.config.modules, self.config.filters)

        if not selected:
            logger.warning("No test modules selected")
            result = RunResult(
                started_at=started_at,
                duration=time.monotonic() - start,
                mode=self.config.mode,
                dry_run=self.config.dry_run,
                no_tests_selected=True,
            )
            return self._report(result)

        logger.info(f"Selected {len(selected)} modules: {[m.name for m in selected]}")

        self._transition(RunState.LOADING)
        snapshot = await asyncio.to_thread(self.plan_store.load)

        if self.config.dry_run:
            logger.info("Dry run: plan loaded and modules validated, skipping cases")
            result = RunResult(
                started_at=started_at,
                duration=time.monotonic() - start,
                mode=self.config.mode,
                modules={
                    m.name: ModuleResult(name=m.name, declared_cases=len(m.cases))
                    for m in selected
                },
                dry_run=True,
            )
            return self._report(result)

        self._transition(RunState.SCHEDULING)
        progress = {m.name: ModuleProgress(m) for m in selected}
        if self.config.mode == "parallel":
            execution = self._run_parallel(selected, snapshot, progress)
        else:
            execution = self._run_sequential(selected, snapshot, progress)

        self._transition(RunState.EXECUTING)
        logger.info(
            f"Executing {len(selected)} modules ({self.config.mode}, "
            f"run timeout {self.config.run_timeout or 'none'})"
        )
        aborted = None
        try:
            await asyncio.wait_for(execution, timeout=self.config.run_timeout)
        except TimeoutError:
            aborted = f"run timeout after {self.config.run_timeout}s"
            logger.error(f"Run timed out after {self.config.run_timeout}s")
        logger.info("Module execution completed")

        self._transition(RunState.AGGREGATING)
        modules = {
            name: tracker.result or tracker.finish_incomplete(aborted or "not run")
            for name, tracker in progress.items()
        }
        result = RunResult(
            started_at=started_at,
            duration=time.monotonic() - start,
            mode=self.config.mode,
            modules=dict(sorted(modules.items())),
            aborted=aborted,
        )
        logger.info(
            f"Run finished: {result.passed}/{result.total} passed, "
            f"{result.failed} failed, {result.errored} errors"
        )
        return self._report(result)

    def _report(self, result: RunResult) -> RunResult:
        self._transition(RunState.REPORTING)
        if self.config.write_artifacts:
            try:
                written = write_artifacts(result, self.config.output_dir)
            except OSError as e:
                logger.error(f"Failed to write report artifacts: {e}")
            else:
                self.artifacts = [str(p) for p in written]
        self._transition(RunState.DONE)
        return result

    async def _run_sequential(
        self,
        modules: list[TestModule],
        snapshot: PlanSnapshot,
        progress: dict[str, ModuleProgress],
    ) -> None:
        for module in modules:
            await self._run_one(module, snapshot, progress[module.name])

    async def _run_parallel(
        self,
        modules: list[TestModule],
        snapshot: PlanSnapshot,
        progress: dict[str, ModuleProgress],
    ) -> None:
        semaphore = asyncio.Semaphore(self.config.workers)

        async def bounded(module: TestModule) -> None:
            async with semaphore:
                await self._run_one(module, snapshot, progress[module.name])

        tasks: list[Awaitable[None]] = [bounded(m) for m in modules]
        await asyncio.gather(*tasks)

    async def _run_one(
        self, module: TestModule, snapshot: PlanSnapshot, progress: ModuleProgress
    ) -> None:
        """Run a module, recording a crash as a module-level error."""
        try:
            await run_module(
                module,
                snapshot,
                case_timeout=self.config.case_timeout,
                module_timeout=self.config.module_timeout,
                progress=progress,
            )
        except Exception as e:
            logger.error(
                f"Module '{module.name}' crashed: {type(e).__name__}: {e}",
                exc_info=e,
            )
            progress.finish_incomplete(f"module crashed: {type(e).__name__}: {e}")
