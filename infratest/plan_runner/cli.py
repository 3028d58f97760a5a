"""CLI entry point for the plan test runner."""

import asyncio
import logging
import sys
from pathlib import Path

import typer

from infratest.plan_runner.config_loader import build_config, load_config_file
from infratest.plan_runner.errors import ConfigurationError, FatalRunError
from infratest.plan_runner.models.run_config import OutputFormat
from infratest.plan_runner.orchestrator import TestOrchestrator
from infratest.plan_runner.registry import build_registry
from infratest.plan_runner.reporter import render, render_fatal

logger = logging.getLogger(__name__)

app = typer.Typer()

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _resolve_mode(parallel: bool, sequential: bool) -> str | None:
    if parallel and sequential:
        raise ConfigurationError("--parallel and --sequential are mutually exclusive")
    if parallel:
        return "parallel"
    if sequential:
        return "sequential"
    return None


@app.command()
def main(  # noqa: C901
    plan: Path | None = typer.Option(  # noqa: B008
        None, envvar="PLAN_TEST_PLAN", help="Rendered plan JSON document"
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None, envvar="PLAN_TEST_CONFIG", help="YAML config file"
    ),
    module: list[str] | None = typer.Option(  # noqa: B008
        None, help="Run only this module (repeatable)"
    ),
    filter_: list[str] | None = typer.Option(  # noqa: B008
        None, "--filter", help="Glob pattern on module names (repeatable)"
    ),
    parallel: bool = typer.Option(False, "--parallel", help="Run modules in parallel"),
    sequential: bool = typer.Option(
        False, "--sequential", help="Run modules one at a time (default)"
    ),
    workers: int | None = typer.Option(
        None, envvar="PLAN_TEST_WORKERS", help="Parallel worker limit"
    ),
    case_timeout: float | None = typer.Option(
        None, envvar="PLAN_TEST_CASE_TIMEOUT", help="Per-case timeout in seconds"
    ),
    module_timeout: float | None = typer.Option(
        None, envvar="PLAN_TEST_MODULE_TIMEOUT", help="Per-module timeout in seconds"
    ),
    run_timeout: float | None = typer.Option(
        None, envvar="PLAN_TEST_RUN_TIMEOUT", help="Whole-run timeout in seconds"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate modules and plan without running cases"
    ),
    output_format: OutputFormat | None = typer.Option(  # noqa: B008
        None, "--format", envvar="PLAN_TEST_FORMAT", help="Report output form"
    ),
    output_dir: Path | None = typer.Option(  # noqa: B008
        None, envvar="PLAN_TEST_OUTPUT_DIR", help="Directory for report artifacts"
    ),
    no_artifacts: bool = typer.Option(
        False, "--no-artifacts", help="Do not write report artifacts"
    ),
    suite: list[Path] | None = typer.Option(  # noqa: B008
        None, help="Extra suite file or directory (repeatable)"
    ),
    no_builtin: bool = typer.Option(
        False, "--no-builtin", help="Do not register the bundled suites"
    ),
    list_modules: bool = typer.Option(
        False, "--list", help="List registered modules and exit"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
) -> None:
    """Run infrastructure plan tests."""
    _configure_logging(verbose, quiet)
    fatal_format = output_format or OutputFormat.human

    try:
        file_values = load_config_file(config) if config else {}
        if output_format is None and file_values.get("output_format") in {
            f.value for f in OutputFormat
        }:
            fatal_format = OutputFormat(file_values["output_format"])

        suite_paths = [*file_values.get("suite_paths", []), *(suite or [])]
        include_builtin = not no_builtin and file_values.get("include_builtin", True)
        registry = build_registry(
            [Path(p) for p in suite_paths], include_builtin=include_builtin
        )

        if list_modules:
            for registered in registry:
                typer.echo(
                    f"{registered.name}\t{len(registered.cases)} cases\t"
                    f"{registered.description}"
                )
            return

        run_config = build_config(
            file_values,
            {
                "plan_path": plan,
                "modules": module or None,
                "filters": filter_ or None,
                "mode": _resolve_mode(parallel, sequential),
                "workers": workers,
                "case_timeout": case_timeout,
                "module_timeout": module_timeout,
                "run_timeout": run_timeout,
                "output_dir": output_dir,
                "write_artifacts": False if no_artifacts else None,
                "suite_paths": suite_paths or None,
                "include_builtin": include_builtin,
                "dry_run": dry_run or None,
                "output_format": output_format,
            },
        )
        fatal_format = run_config.output_format

        logger.info("=" * 80)
        logger.info("Infrastructure Plan Tests - Starting")
        logger.info("=" * 80)
        logger.info(f"Plan: {run_config.plan_path}")
        logger.info(f"Mode: {run_config.mode}")

        orchestrator = TestOrchestrator(registry, run_config)
        result = asyncio.run(orchestrator.run())
    except FatalRunError as e:
        logger.error(f"Fatal: {type(e).__name__}: {e}")
        typer.echo(render_fatal(e, fatal_format))
        raise typer.Exit(code=EXIT_FATAL)

    typer.echo(render(result, run_config.output_format))

    if result.no_tests_selected:
        logger.warning("No tests selected")
    if not result.success:
        logger.error(
            f"Tests failed: {result.failed + result.errored}/{result.total}"
        )
        raise typer.Exit(code=EXIT_FAILED)


if __name__ == "__main__":  # pragma: no cover
    app()
