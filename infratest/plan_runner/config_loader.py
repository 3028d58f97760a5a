"""Build the run configuration from a YAML file and command-line overrides."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from infratest.plan_runner.errors import ConfigurationError
from infratest.plan_runner.models.run_config import RunConfig

logger = logging.getLogger(__name__)


def load_config_file(config_file: Path) -> dict[str, Any]:
    """Load settings from a YAML config file.

    Args:
        config_file: Path to the config file

    Returns:
        Mapping of ``RunConfig`` field names to values

    Raises:
        ConfigurationError: If the file is missing, not YAML or not a mapping

    """
    if not config_file.is_file():
        raise ConfigurationError(f"Config file not found: {config_file}")

    try:
        with config_file.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_file} must contain a mapping, "
            f"got {type(data).__name__}"
        )

    # Relative paths in the file are relative to the file itself
    base = config_file.parent
    for key in ("plan_path", "output_dir"):
        if isinstance(data.get(key), str):
            data[key] = str(base / data[key])
    if isinstance(data.get("suite_paths"), list):
        data["suite_paths"] = [
            str(base / p) if isinstance(p, str) else p for p in data["suite_paths"]
        ]
    return data


def build_config(
    file_values: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RunConfig:
    """Merge file values with overrides and validate the result.

    Overrides whose value is ``None`` are ignored so that unset command-line
    options leave file values (or defaults) in place.

    Raises:
        ConfigurationError: If the merged settings are invalid

    """
    merged: dict[str, Any] = dict(file_values or {})
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        config = RunConfig.model_validate(merged)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {errors}") from e

    logger.debug(f"Run configuration: {config.model_dump(mode='json')}")
    return config
