"""Configuration system for dirscope.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages. Configuration is optional: every
field has a default, so ``MainConfig()`` is a complete configuration.
"""

import os
import sys
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Final

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from dirscope.core.errors import ConfigurationError, EnvironmentVariableError

__all__ = [
    "BUNDLE_SHORTCUT_DEFAULT",
    "DEFAULT_BUNDLE_SUFFIXES",
    "ENV_VAR_PATTERN",
    "ApplicationConfig",
    "ConfigurationError",
    "EnvironmentVariableError",
    "MainConfig",
    "ScanConfig",
    "load_main_config",
    "resolve_env_var",
    "resolve_env_vars_in_dict",
]

# Matches ${VARIABLE_NAME} where VARIABLE_NAME holds letters, digits and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z0-9_]+)\}")

# Directory suffixes the host OS treats as one logical unit
DEFAULT_BUNDLE_SUFFIXES: Final[tuple[str, ...]] = (
    ".app",
    ".framework",
    ".xcframework",
    ".bundle",
    ".plugin",
    ".kext",
    ".photoslibrary",
)

# du reports allocated blocks; the shortcut is on by default only where bundles exist
BUNDLE_SHORTCUT_DEFAULT: Final[bool] = sys.platform == "darwin"


class ScanConfig(BaseModel):
    """Configuration for directory scanning and sizing.

    Defines the refresh cadence of scan sessions, walk pacing, protected
    directory visibility, and the opaque-bundle shortcut.
    """

    refresh_interval: Annotated[
        float,
        Field(
            gt=0,
            description="Seconds between progress refreshes while sizes are computing",
        ),
    ] = 1.0
    include_protected: Annotated[
        bool,
        Field(
            description="List well-known OS-internal roots such as /proc and /System",
        ),
    ] = False
    pace_every_files: Annotated[
        int,
        Field(
            gt=0,
            description="Yield to the event loop after this many files in a directory walk",
        ),
    ] = 256
    pace_delay: Annotated[
        float,
        Field(
            ge=0,
            description="Seconds to sleep at each pacing yield",
        ),
    ] = 0.001
    bundle_shortcut: Annotated[
        bool,
        Field(
            description="Size opaque bundles with an external utility before walking them",
        ),
    ] = BUNDLE_SHORTCUT_DEFAULT
    bundle_suffixes: Annotated[
        list[str],
        Field(
            description="Directory name suffixes recognized as opaque bundles",
        ),
    ] = list(DEFAULT_BUNDLE_SUFFIXES)
    bundle_command: Annotated[
        list[str],
        Field(
            min_length=1,
            description="Command used to size a bundle; the bundle path is appended",
        ),
    ] = ["du", "-sk"]
    bundle_command_unit: Annotated[
        int,
        Field(
            gt=0,
            description="Bytes per unit reported by the bundle command",
        ),
    ] = 1024
    resort_min_delta_bytes: Annotated[
        int,
        Field(
            ge=0,
            description="Minimum change of the grand total that triggers a re-sort",
        ),
    ] = 0

    @field_validator("bundle_suffixes", mode="after")
    @classmethod
    def validate_bundle_suffixes(cls, v: list[str]) -> list[str]:
        """Validate and normalize bundle suffixes.

        Args:
            v: List of suffixes

        Returns:
            Lower-cased suffixes

        Raises:
            ValueError: If a suffix does not start with a dot
        """
        normalized: list[str] = []
        for suffix in v:
            if not suffix.startswith(".") or len(suffix) < 2:
                msg = f"Bundle suffix must start with '.' and name an extension, got: {suffix!r}"
                raise ValueError(msg)
            normalized.append(suffix.lower())
        return normalized


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "WARNING"
    syslog_enabled: Annotated[
        bool,
        Field(
            description="Enable syslog integration",
        ),
    ] = False


class MainConfig(BaseModel):
    """Main application configuration schema.

    Top-level configuration container aggregating all configuration sections:
    - scan: Directory scanning and sizing behavior
    - application: Application-level settings
    """

    scan: Annotated[
        ScanConfig,
        Field(
            description="Directory scanning configuration",
        ),
    ] = ScanConfig()
    application: Annotated[
        ApplicationConfig,
        Field(
            description="Application-level configuration",
        ),
    ] = ApplicationConfig()


def resolve_env_var(value: str) -> str:
    """Resolve environment variable references in a string value.

    Parses ${VARIABLE_NAME} syntax and replaces with environment variable values.
    Supports multiple references in a single string.

    Args:
        value: String potentially containing environment variable references

    Returns:
        String with environment variables resolved

    Raises:
        EnvironmentVariableError: If a referenced environment variable is missing

    Examples:
        >>> os.environ["SCAN_ROOT"] = "/data"
        >>> resolve_env_var("${SCAN_ROOT}/media")
        '/data/media'
        >>> resolve_env_var("no variables here")
        'no variables here'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _resolve_item(item: object) -> object:
    if isinstance(item, str):
        return resolve_env_var(item)
    if isinstance(item, dict):
        # YAML data is untyped at load time; validated by Pydantic after resolution
        return resolve_env_vars_in_dict(item)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    if isinstance(item, list):
        return [_resolve_item(x) for x in item]  # pyright: ignore[reportUnknownVariableType]  # YAML list items
    return item


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in a dictionary.

    Traverses nested dictionaries and lists, resolving references in string
    values. Non-string values are preserved as-is.

    Args:
        data: Dictionary potentially containing environment variable references

    Returns:
        New dictionary with environment variables resolved

    Raises:
        EnvironmentVariableError: If a referenced environment variable is missing

    Examples:
        >>> os.environ["DU"] = "gdu"
        >>> resolve_env_vars_in_dict({"scan": {"bundle_command": ["${DU}", "-sk"]}})
        {'scan': {'bundle_command': ['gdu', '-sk']}}
    """
    return {key: _resolve_item(value) for key, value in data.items()}


def _format_validation_error(error: ValidationError, config_path: Path) -> str:
    error_lines = ["Configuration validation failed:", ""]
    for detail in error.errors():
        field_path = " → ".join(str(loc) for loc in detail["loc"])
        error_lines.append(f"  Field: {field_path}")
        error_lines.append(f"  Error: {detail['msg']}")
        error_lines.append(f"  Type: {detail['type']}")
        error_lines.append("")

    error_lines.append(f"Configuration file: {config_path}")
    error_lines.append("Please fix the above errors and try again.")
    return "\n".join(error_lines)


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate application configuration from a YAML file.

    Loads the configuration file, resolves environment variables, and
    validates against the MainConfig schema. An empty file yields defaults.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded, references an unset
            environment variable, or fails validation

    Examples:
        >>> config = load_main_config(Path("config/dirscope.example.yaml"))
        >>> config.scan.refresh_interval
        1.0
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location "
            f"or omit --config to use defaults."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    if raw_data is None:
        return MainConfig()

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        return MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e, config_path)) from e
