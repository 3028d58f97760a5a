"""Data models for test definitions, run configuration and results."""

from infratest.plan_runner.models.assertion_result import (
    AssertionResult,
    AssertionStatus,
)
from infratest.plan_runner.models.run_config import OutputFormat, RunConfig
from infratest.plan_runner.models.test_definition import (
    CaseDefinition,
    CheckSpec,
    SuiteDefinition,
    TestCase,
    TestModule,
)
from infratest.plan_runner.models.test_result import (
    CaseResult,
    ExecutionMode,
    ModuleResult,
    RunResult,
)

__all__ = [
    "AssertionResult",
    "AssertionStatus",
    "CaseDefinition",
    "CaseResult",
    "CheckSpec",
    "ExecutionMode",
    "ModuleResult",
    "OutputFormat",
    "RunConfig",
    "RunResult",
    "SuiteDefinition",
    "TestCase",
    "TestModule",
]
