"""Configuration loading and merging logic."""

import json
import os
from pathlib import Path
from typing import Any, Optional

from swimr.config.defaults import CONFIG_SEARCH_PATHS
from swimr.config.models import SwimrConfig

# Override name -> (config section, field)
OVERRIDE_TARGETS: dict[str, tuple[str, str]] = {
    "endpoint_url": ("analysis", "endpoint_url"),
    "api_key": ("analysis", "api_key"),
    "db_path": ("storage", "db_path"),
    "run_state_path": ("storage", "run_state_path"),
    "verbose": ("output", "verbosity"),
    "log_file": ("output", "log_file"),
}

# Environment variable -> override name
ENV_OVERRIDES: dict[str, str] = {
    "SWIMR_ANALYZE_URL": "endpoint_url",
    "SWIMR_API_KEY": "api_key",
    "SWIMR_DB_PATH": "db_path",
    "SWIMR_RUN_STATE_PATH": "run_state_path",
}


def find_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Locate the configuration file.

    An explicit path must exist; otherwise the first existing entry of the
    search paths wins.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
    """
    if explicit_path is not None:
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        return explicit_path

    return next((p for p in CONFIG_SEARCH_PATHS if p.exists()), None)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON configuration file.

    Raises:
        ValueError: If the file does not hold a JSON object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return data


def environment_overrides() -> dict[str, Any]:
    """Collect overrides from SWIMR_* environment variables."""
    return {name: os.environ[var] for var, name in ENV_OVERRIDES.items() if os.environ.get(var)}


def merge_cli_overrides(config: SwimrConfig, **overrides: Any) -> SwimrConfig:
    """Apply named overrides on top of a configuration.

    Args:
        config: Base configuration.
        **overrides: Values keyed by the names in OVERRIDE_TARGETS; None means unset.

    Returns:
        A new, validated configuration.

    Raises:
        TypeError: If an override name is unknown.
    """
    data = config.model_dump()
    for name, value in overrides.items():
        if name not in OVERRIDE_TARGETS:
            raise TypeError(f"Unknown configuration override: {name}")
        if value is None:
            continue
        section, field = OVERRIDE_TARGETS[name]
        data[section][field] = value

    return SwimrConfig.model_validate(data)


def load_config(
    config_path: Optional[Path] = None,
    **cli_overrides: Any,
) -> SwimrConfig:
    """Load configuration with CLI overrides.

    Sources, highest priority first:
    1. CLI arguments
    2. SWIMR_* environment variables
    3. Config file (explicit, or the first one found on the search paths)
    4. Default values

    Args:
        config_path: Explicit config file path (from --config CLI option).
        **cli_overrides: CLI argument overrides.

    Returns:
        Merged configuration object.
    """
    found = find_config_file(config_path)
    config = SwimrConfig.model_validate(load_config_file(found)) if found else SwimrConfig()

    overrides = environment_overrides()
    overrides.update({k: v for k, v in cli_overrides.items() if v is not None})
    return merge_cli_overrides(config, **overrides)
