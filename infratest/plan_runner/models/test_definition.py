"""Models for test modules, test cases and declarative suite files."""

from collections.abc import Callable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from infratest.plan_runner.models.assertion_result import AssertionResult
from infratest.plan_runner.plan_store import PlanSnapshot

AssertionName = Literal[
    "equals",
    "not_equals",
    "not_empty",
    "contains",
    "matches",
    "path_exists",
    "resource_count",
]
Comparator = Literal["eq", "gte", "lte"]
CaseFunction = Callable[[PlanSnapshot], Sequence[AssertionResult]]

_REQUIRED_ARGS: dict[str, tuple[str, ...]] = {
    "equals": ("path", "expected"),
    "not_equals": ("path", "expected"),
    "not_empty": ("path",),
    "contains": ("path", "needle"),
    "matches": ("path", "pattern"),
    "path_exists": ("path",),
    "resource_count": ("resource_type", "count"),
}


class CheckSpec(BaseModel):
    """One assertion invocation declared in a suite file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    assertion: AssertionName = Field(..., description="Assertion primitive to run")
    path: str | None = Field(default=None, description="Path to the checked value")
    expected: Any = Field(default=None, description="Expected value")
    needle: Any = Field(default=None, description="Value that must be contained")
    pattern: str | None = Field(default=None, description="Regular expression")
    resource_type: str | None = Field(
        default=None,
        description="Resource type; path is then resolved inside each resource",
    )
    count: int | None = Field(default=None, ge=0, description="Expected count")
    comparator: Comparator = Field(default="eq", description="Count comparison")
    ordered: bool = Field(
        default=True, description="Compare lists in order for (not_)equals"
    )
    message: str | None = Field(default=None, description="Custom failure message")

    @model_validator(mode="after")
    def _check_arguments(self) -> "CheckSpec":
        missing = [
            arg
            for arg in _REQUIRED_ARGS[self.assertion]
            if arg not in self.model_fields_set
        ]
        if missing:
            raise ValueError(
                f"assertion '{self.assertion}' requires: {', '.join(missing)}"
            )
        return self


class CaseDefinition(BaseModel):
    """Test case declared in a suite file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Test case name")
    description: str = Field(default="", description="What the case validates")
    checks: list[CheckSpec] = Field(..., min_length=1, description="Checks to run")


class SuiteDefinition(BaseModel):
    """Complete test module loaded from a suite YAML file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., pattern=r"^[A-Za-z0-9_.-]+$", description="Module name")
    description: str = Field(default="", description="Infrastructure concern covered")
    cases: list[CaseDefinition] = Field(..., min_length=1, description="Test cases")


class TestCase(BaseModel):
    """Named unit of validation owned by one test module."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Test case name")
    run: CaseFunction = Field(..., description="Evaluates the case's assertions")
    description: str = Field(default="", description="What the case validates")


class TestModule(BaseModel):
    """Named, fixed collection of test cases."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Test module name")
    cases: tuple[TestCase, ...] = Field(..., description="Cases in declaration order")
    description: str = Field(default="", description="Infrastructure concern covered")
    source: str | None = Field(default=None, description="Suite file it came from")

    @property
    def case_names(self) -> list[str]:
        """Case names in declaration order."""
        return [case.name for case in self.cases]
