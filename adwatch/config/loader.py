"""Loading of the watchdog configuration file and environment."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

# Searched in order when no explicit path is given
CONFIG_SEARCH_PATHS = (Path("config.yaml"), Path("config") / "config.yaml")

_EXAMPLE_HINT = "Copy config.example.yaml to config.yaml and adjust it"


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Build the runtime configuration.

    The YAML file is located (explicit path first, then CONFIG_SEARCH_PATHS),
    checked for non-fatal issues, validated against AppConfig and combined
    with the environment. An empty file yields the defaults. USER_SERVICE_URL,
    when set, replaces ``user_directory.base_url`` from the file.

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If the file is missing or invalid, or the
            environment is incomplete
    """
    raw = _read_yaml(_find_config_file(config_path))

    emit_warnings(check_for_warnings(raw))
    app_config = _validate(raw)

    env_config = load_environment_config()
    if env_config.user_service_url:
        app_config.user_directory.base_url = env_config.user_service_url

    return app_config, env_config


def validate_config_file(config_path: Path) -> bool:
    """
    Check a configuration file without reading the environment.

    Prints a one-line verdict (and the error report on failure) to stdout.

    Returns:
        True if the file is valid
    """
    try:
        _validate(_read_yaml(config_path))
    except ConfigurationError as e:
        print(f"✗ Configuration validation failed:\n{e}")
        return False

    print(f"✓ Configuration file {config_path} is valid")
    return True


def _find_config_file(config_path: Optional[Path]) -> Path:
    if config_path is not None:
        if config_path.exists():
            return config_path
        raise ConfigurationError(
            f"Specified configuration file not found: {config_path}",
            suggestions=["Check the --config path", _EXAMPLE_HINT],
        )

    for candidate in CONFIG_SEARCH_PATHS:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[f"Tried: {candidate}" for candidate in CONFIG_SEARCH_PATHS],
        suggestions=[_EXAMPLE_HINT, "Pass --config to use another location"],
    )


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration in {config_file}: {e}",
            suggestions=["Check the YAML syntax (indent with spaces, not tabs)"],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file {config_file}: {e}",
            suggestions=[f"Ensure {config_file} exists and is readable"],
        ) from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping at the top level",
            errors=[f"Got {type(raw).__name__}"],
            suggestions=[_EXAMPLE_HINT],
        )
    return raw


def _validate(raw: Dict[str, Any]) -> AppConfig:
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=[_describe_error(error) for error in e.errors()],
            suggestions=[
                "Compare your file with config.example.yaml",
                "Check value types and allowed ranges",
            ],
        ) from e


def _describe_error(error: Dict[str, Any]) -> str:
    """Turn one pydantic error into a line of the configuration report."""
    field_path = ".".join(str(loc) for loc in error["loc"])
    kind = error["type"]

    if kind == "missing":
        return f"Missing required field: {field_path}"
    if kind in ("string_type", "int_type", "int_parsing", "bool_type", "bool_parsing", "float_type"):
        expected = kind.split("_")[0]
        return f"Invalid type for '{field_path}': expected {expected}, got {error.get('input')!r}"
    return f"{field_path}: {error['msg']}"
