"""Render finalized run results and write report artifacts."""

import json
import logging
from pathlib import Path
from typing import Any

from infratest.plan_runner.models.run_config import OutputFormat
from infratest.plan_runner.models.test_result import ModuleResult, RunResult

logger = logging.getLogger(__name__)

SUMMARY_FILE = "test-summary.json"
STATUS_FILE = "test-status.json"
MODULE_REPORT_SUFFIX = "-report.json"


def _rate(passed: int, total: int) -> int:
    return passed * 100 // total if total else 0


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def module_report(module: ModuleResult) -> dict[str, Any]:
    """Structured breakdown of one module."""
    return {
        "name": module.name,
        "status": module.status,
        "tests_run": module.total,
        "tests_declared": module.declared_cases,
        "passed": module.passed,
        "failed": module.failed,
        "errors": module.errored,
        "success_rate": _rate(module.passed, module.total),
        "duration": round(module.duration, 3),
        "error": module.error,
        "failures": [
            {"case": case.name, "status": case.status, "messages": case.messages}
            for case in module.cases
            if case.status != "pass"
        ],
        "cases": [
            {
                "name": case.name,
                "status": case.status,
                "duration": round(case.duration, 3),
                "reason": case.reason,
                "assertions": [a.model_dump(mode="json") for a in case.assertions],
            }
            for case in module.cases
        ],
    }


def status_marker(run: RunResult) -> dict[str, Any]:
    """Minimal success flag and counts for automation gating."""
    return {
        "success": run.success,
        "total": run.total,
        "passed": run.passed,
        "failed": run.failed,
        "errors": run.errored,
        "no_tests_selected": run.no_tests_selected,
    }


def structured_report(run: RunResult) -> dict[str, Any]:
    """Machine-readable report of the whole run."""
    modules = [run.modules[name] for name in sorted(run.modules)]
    modules_passed = sum(1 for m in modules if m.status == "pass")
    return {
        "timestamp": run.started_at.isoformat(),
        "duration": round(run.duration, 3),
        "mode": run.mode,
        "dry_run": run.dry_run,
        "no_tests_selected": run.no_tests_selected,
        "aborted": run.aborted,
        "success": run.success,
        "total": run.total,
        "passed": run.passed,
        "failed": run.failed,
        "errors": run.errored,
        "success_rate": _rate(run.passed, run.total),
        "modules_total": len(modules),
        "modules_passed": modules_passed,
        "modules_success_rate": _rate(modules_passed, len(modules)),
        "modules": {m.name: module_report(m) for m in modules},
    }


def _human(run: RunResult) -> str:
    lines = [
        "=" * 60,
        "Infrastructure Plan Test Report",
        "=" * 60,
        f"Started:  {run.started_at.isoformat()}",
        f"Mode:     {run.mode}",
        f"Duration: {run.duration:.2f}s",
    ]
    if run.dry_run:
        lines.append("Dry run: cases were not executed")
    if run.aborted:
        lines.append(f"Aborted:  {run.aborted}")
    lines.append("")

    for name in sorted(run.modules):
        module = run.modules[name]
        mark = "✓" if module.status == "pass" else "✗"
        lines.append(
            f"{mark} {module.name}: {module.passed}/{module.total} passed "
            f"({module.duration:.2f}s)"
        )
        if module.error:
            lines.append(f"    Module error: {module.error}")
        for case in module.cases:
            if case.status == "pass":
                continue
            lines.append(f"    ✗ {case.name} [{case.status}]")
            lines.extend(f"        {message}" for message in case.messages)

    lines.append("")
    lines.append(_summary(run))
    return "\n".join(lines)


def _summary(run: RunResult) -> str:
    if run.no_tests_selected:
        return "No tests selected"
    if run.dry_run:
        declared = sum(m.declared_cases for m in run.modules.values())
        return f"DRY RUN: {len(run.modules)} modules, {declared} cases validated"
    verdict = "PASSED" if run.success else "FAILED"
    return (
        f"{verdict}: {run.passed}/{run.total} passed, {run.failed} failed, "
        f"{run.errored} errors ({_rate(run.passed, run.total)}%)"
    )


def render(run: RunResult, output_format: OutputFormat | str) -> str:
    """Render a finalized run result.

    The output depends only on ``run`` and ``output_format``, so rendering the
    same result twice yields identical text.
    """
    output_format = OutputFormat(output_format)
    if output_format is OutputFormat.structured:
        return _dump(structured_report(run))
    if output_format is OutputFormat.human:
        return _human(run)
    return _summary(run)


def render_fatal(error: Exception, output_format: OutputFormat | str) -> str:
    """Render the report for a run that aborted before executing anything."""
    if OutputFormat(output_format) is OutputFormat.structured:
        return _dump(
            {
                "success": False,
                "fatal": True,
                "error_type": type(error).__name__,
                "message": str(error),
            }
        )
    return f"FATAL {type(error).__name__}: {error}"


def write_artifacts(run: RunResult, output_dir: Path) -> list[Path]:
    """Write the summary, per-module reports and status marker.

    Returns:
        Paths of the written files

    """
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    summary_file = output_dir / SUMMARY_FILE
    summary_file.write_text(render(run, OutputFormat.structured) + "\n")
    written.append(summary_file)

    for name in sorted(run.modules):
        module_file = output_dir / f"{name}{MODULE_REPORT_SUFFIX}"
        module_file.write_text(_dump(module_report(run.modules[name])) + "\n")
        written.append(module_file)

    status_file = output_dir / STATUS_FILE
    status_file.write_text(_dump(status_marker(run)) + "\n")
    written.append(status_file)

    logger.info(f"Wrote {len(written)} report artifacts to {output_dir}")
    return written
