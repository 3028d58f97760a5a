"""Configuration model for a test run."""

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from infratest.plan_runner.models.test_result import ExecutionMode


class OutputFormat(str, Enum):
    """Report output forms."""

    structured = "structured"
    human = "human"
    summary = "summary"


def _default_workers() -> int:
    return os.cpu_count() or 1


class RunConfig(BaseModel):
    """Resolved settings for one run, merged from file, env and CLI."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    plan_path: Path = Field(..., description="Rendered plan JSON document")
    modules: list[str] = Field(
        default_factory=list, description="Explicit module names to run"
    )
    filters: list[str] = Field(
        default_factory=list, description="Glob patterns matched against module names"
    )
    mode: ExecutionMode = Field(default="sequential", description="Execution mode")
    workers: int = Field(
        default_factory=_default_workers, ge=1, description="Parallel worker limit"
    )
    case_timeout: float | None = Field(
        default=30.0, gt=0, description="Per-case timeout in seconds"
    )
    module_timeout: float | None = Field(
        default=300.0, gt=0, description="Per-module timeout in seconds"
    )
    run_timeout: float | None = Field(
        default=None, gt=0, description="Whole-run timeout in seconds"
    )
    output_dir: Path = Field(
        default=Path("test-results"), description="Directory for report artifacts"
    )
    write_artifacts: bool = Field(
        default=True, description="Whether report artifacts are written"
    )
    suite_paths: list[Path] = Field(
        default_factory=list, description="Extra suite files or directories"
    )
    include_builtin: bool = Field(
        default=True, description="Whether the bundled suites are registered"
    )
    dry_run: bool = Field(default=False, description="Validate without running cases")
    output_format: OutputFormat = Field(
        default=OutputFormat.human, description="Report output form"
    )
