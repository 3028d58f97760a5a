"""Models for individual assertion outcomes."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AssertionStatus = Literal["pass", "fail", "error"]


class AssertionResult(BaseModel):
    """Outcome of a single assertion invocation."""

    model_config = ConfigDict(frozen=True)

    assertion: str = Field(..., description="Name of the assertion primitive")
    status: AssertionStatus = Field(..., description="Assertion status")
    message: str = Field(..., description="Human-readable outcome")
    expected: Any = Field(default=None, description="Expected value, if any")
    actual: Any = Field(default=None, description="Actual value, if resolved")
    path: str | None = Field(default=None, description="Path into the plan")

    @property
    def passed(self) -> bool:
        """Whether the assertion passed."""
        return self.status == "pass"
