"""Tests for the module execution harness."""

import threading
import time
from collections.abc import Iterator

import pytest

from infratest.plan_runner.models.assertion_result import AssertionResult
from infratest.plan_runner.models.test_definition import TestCase, TestModule
from infratest.plan_runner.module_runner import ModuleProgress, run_case, run_module
from infratest.plan_runner.plan_store import PlanSnapshot

SNAPSHOT = PlanSnapshot({"storage": {"bucket": {"encryption": {"enabled": True}}}})


def _result(status: str) -> AssertionResult:
    return AssertionResult(assertion="equals", status=status, message=status)


def _case(name: str, *statuses: str, delay: float = 0.0) -> TestCase:
    def run(snapshot: PlanSnapshot) -> list[AssertionResult]:
        if delay:
            time.sleep(delay)
        return [_result(s) for s in statuses]

    return TestCase(name=name, run=run)


@pytest.fixture
def release() -> Iterator[threading.Event]:
    """Event that unblocks hung cases once the test is over."""
    event = threading.Event()
    yield event
    event.set()


def _hung(name: str, release: threading.Event) -> TestCase:
    def run(snapshot: PlanSnapshot) -> list[AssertionResult]:
        release.wait(10)
        return [_result("pass")]

    return TestCase(name=name, run=run)


def _crashing(name: str) -> TestCase:
    def run(snapshot: PlanSnapshot) -> list[AssertionResult]:
        raise KeyError("boom")

    return TestCase(name=name, run=run)


async def test_run_case_pass() -> None:
    """run_case passes when every assertion passes."""
    result = await run_case(_case("c", "pass", "pass"), SNAPSHOT)

    assert result.status == "pass"
    assert len(result.assertions) == 2


async def test_run_case_fail_wins_over_error() -> None:
    """A failed assertion makes the case fail even if another errored."""
    result = await run_case(_case("c", "pass", "error", "fail"), SNAPSHOT)

    assert result.status == "fail"
    assert [a.status for a in result.assertions] == ["pass", "error", "fail"]


async def test_run_case_error_without_failure() -> None:
    """An errored assertion without failures makes the case error."""
    result = await run_case(_case("c", "pass", "error"), SNAPSHOT)

    assert result.status == "error"


async def test_run_case_without_assertions_is_error() -> None:
    """A case that evaluates nothing is an error."""
    result = await run_case(_case("c"), SNAPSHOT)

    assert result.status == "error"
    assert result.reason == "no assertions evaluated"


async def test_run_case_crash_is_error() -> None:
    """A case raising an exception is recorded as an error."""
    result = await run_case(_crashing("c"), SNAPSHOT)

    assert result.status == "error"
    assert result.reason is not None
    assert "KeyError" in result.reason


async def test_run_case_timeout() -> None:
    """A case outliving its timeout is recorded as an error."""
    result = await run_case(_case("slow", "pass", delay=0.5), SNAPSHOT, timeout=0.05)

    assert result.status == "error"
    assert result.reason == "case timeout after 0.05s"


async def test_run_module_keeps_declaration_order() -> None:
    """run_module reports cases in declaration order."""
    module = TestModule(
        name="s3",
        cases=(
            _case("first", "pass", delay=0.05),
            _case("second", "fail"),
            _case("third", "pass"),
        ),
    )

    result = await run_module(module, SNAPSHOT)

    assert [c.name for c in result.cases] == ["first", "second", "third"]
    assert [c.status for c in result.cases] == ["pass", "fail", "pass"]
    assert result.declared_cases == 3
    assert result.status == "fail"
    assert result.error is None


async def test_run_module_continues_after_crash() -> None:
    """A crashing case errors alone and later cases still run."""
    module = TestModule(
        name="s3", cases=(_crashing("broken"), _case("fine", "pass"))
    )

    result = await run_module(module, SNAPSHOT)

    assert [c.status for c in result.cases] == ["error", "pass"]
    assert result.errored == 1
    assert result.passed == 1


async def test_run_module_timeout_marks_incomplete_cases() -> None:
    """Cases finished before a module timeout keep their outcome."""
    module = TestModule(
        name="s3",
        cases=(
            _case("fast pass", "pass"),
            _case("fast fail", "fail"),
            _case("slow", "pass", delay=0.5),
            _case("never run", "pass"),
        ),
    )

    result = await run_module(module, SNAPSHOT, module_timeout=0.2)

    assert [c.status for c in result.cases] == ["pass", "fail", "error", "error"]
    assert result.cases[2].reason == "module timeout after 0.2s"
    assert result.cases[3].reason == "module timeout after 0.2s"
    assert result.error == "module timeout after 0.2s"
    assert result.total == result.declared_cases == 4


async def test_run_module_case_timeout_continues() -> None:
    """A case timeout errors that case and the module moves on."""
    module = TestModule(
        name="s3",
        cases=(_case("slow", "pass", delay=0.5), _case("after", "pass")),
    )

    result = await run_module(module, SNAPSHOT, case_timeout=0.05)

    assert [c.status for c in result.cases] == ["error", "pass"]
    assert result.cases[0].reason == "case timeout after 0.05s"
    assert result.error is None


async def test_run_module_records_into_progress() -> None:
    """run_module stores its result on the caller's progress tracker."""
    module = TestModule(name="s3", cases=(_case("a", "pass"),))
    progress = ModuleProgress(module)

    result = await run_module(module, SNAPSHOT, progress=progress)

    assert progress.result is result
    assert progress.completed == result.cases


def test_progress_finish_incomplete_before_start() -> None:
    """A module that never started reports every case as errored."""
    module = TestModule(name="s3", cases=(_case("a", "pass"), _case("b", "pass")))
    progress = ModuleProgress(module)

    result = progress.finish_incomplete("run timeout after 1.0s")

    assert [c.status for c in result.cases] == ["error", "error"]
    assert result.duration == 0.0
    assert result.error == "run timeout after 1.0s"


async def test_hung_cases_do_not_starve_later_cases(
    release: threading.Event,
) -> None:
    """Cases after many timed-out cases keep their real outcome."""
    hung = tuple(_hung(f"hung {i}", release) for i in range(40))
    module = TestModule(
        name="s3", cases=(*hung, _case("after", "pass"), _case("last", "fail"))
    )

    result = await run_module(module, SNAPSHOT, case_timeout=0.02)

    assert [c.status for c in result.cases[:40]] == ["error"] * 40
    assert result.cases[40].status == "pass"
    assert result.cases[41].status == "fail"
    assert result.error is None


async def test_timed_out_case_thread_is_daemon(release: threading.Event) -> None:
    """A case thread left running after its timeout does not block exit."""
    await run_case(_hung("stuck", release), SNAPSHOT, timeout=0.02)

    stuck = [t for t in threading.enumerate() if t.name == "case-stuck"]
    assert stuck
    assert all(t.daemon for t in stuck)
