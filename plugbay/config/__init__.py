"""
Plugbay Configuration System - TOML-based settings management.

This module provides:
- Schema declaration and validation
- Runtime typed access with auto-flush
- Config file generation from schemas

Example usage:
    import plugbay.config

    cfg = plugbay.config.settings()
    print(cfg.plugins_dir)      # Read
    cfg.server_port = 8080      # Write (auto-flushes)
"""

import os
from pathlib import Path
from typing import Any

from plugbay.config.runtime import ConfigProxy, ConfigRuntimeError
from plugbay.config.schema import ConfigField, ConfigValidationError, SchemaError
from plugbay.config.toml_handler import generate_toml_from_schema

# Global registry for section schemas
_schemas: dict[str, dict[str, ConfigField]] = {}

# Default config file path, overridable with PLUGBAY_CONFIG
DEFAULT_CONFIG_FILE = Path("config/plugbay.toml")
_config_file: Path | None = None

SECTION = "plugbay"


class ConfigError(Exception):
    """Base exception for config API errors."""

    pass


def field(
    type_: type,
    default: Any,
    description: str = "",
    min: Any = None,
    max: Any = None,
    choices: list[Any] | None = None,
    env: str | None = None,
) -> ConfigField:
    """
    Helper function to create a ConfigField.

    Args:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers) or minimum length (for strings)
        max: Maximum value (for numbers) or maximum length (for strings)
        choices: List of allowed values (optional)
        env: Environment variable overriding the stored value (optional)

    Returns:
        ConfigField instance
    """
    return ConfigField(
        type_=type_,
        default=default,
        description=description,
        min=min,
        max=max,
        choices=choices,
        env=env,
    )


def declare(section: str, schema: dict[str, ConfigField]) -> None:
    """
    Declare configuration schema for a section.

    Args:
        section: Name of the settings section
        schema: Schema dictionary (field_name -> ConfigField)

    Raises:
        ConfigError: If the section already has a schema declared
    """
    if section in _schemas:
        raise ConfigError(f"Schema for section '{section}' already declared")

    _schemas[section] = schema


def config_file() -> Path:
    """Path of the active settings file."""
    if _config_file is not None:
        return _config_file
    return Path(os.environ.get("PLUGBAY_CONFIG", DEFAULT_CONFIG_FILE))


def set_config_file(path: Path | str | None) -> None:
    """Point the settings API at another file (None restores the default)."""
    global _config_file
    _config_file = Path(path) if path is not None else None


def get(section: str) -> ConfigProxy:
    """
    Get runtime configuration accessor for a section.

    Args:
        section: Name of the settings section

    Returns:
        ConfigProxy instance for runtime access

    Raises:
        ConfigError: If section schema not declared
    """
    if section not in _schemas:
        raise ConfigError(
            f"Schema for section '{section}' not declared. Call declare() first."
        )

    return ConfigProxy(section, _schemas[section], config_file())


def write_defaults(section: str = SECTION, path: Path | None = None) -> Path:
    """
    Write a commented settings file holding the section's defaults.

    Args:
        section: Section to render
        path: Target file (the active settings file if omitted)

    Returns:
        Path written

    Raises:
        ConfigError: If section schema not declared
    """
    if section not in _schemas:
        raise ConfigError(f"Schema for section '{section}' not declared")

    target = path or config_file()
    schema = _schemas[section]
    content = generate_toml_from_schema(
        section, schema, {name: f.default for name, f in schema.items()}
    )
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


def settings() -> ConfigProxy:
    """Accessor for the host's own settings section."""
    return get(SECTION)


declare(
    SECTION,
    {
        "plugins_dir": field(
            str, "plugins", "Disk repository root", min=1, env="PLUGBAY_PLUGINS_DIR"
        ),
        "host_config": field(
            str,
            "storage/host_config.toml",
            "Persisted installed/blocked/seen-defaults configuration",
            min=1,
            env="PLUGBAY_HOST_CONFIG",
        ),
        "server_url": field(
            str,
            "http://127.0.0.1:5173",
            "Base URL of the disk protocol server",
            env="PLUGBAY_SERVER_URL",
        ),
        "server_host": field(str, "127.0.0.1", "Disk server bind address"),
        "server_port": field(int, 5173, "Disk server port", min=1, max=65535),
        "halt_delay": field(
            float, 0.5, "Seconds between a destroy acknowledgement and halting", min=0.0
        ),
        "poll_interval": field(
            float, 0.5, "Seconds between destroy-job status polls", min=0.0
        ),
        "max_polls": field(int, 20, "Polls before giving up on a halting server", min=1),
        "log_level": field(
            str,
            "INFO",
            "Logging level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
            env="PLUGBAY_LOG_LEVEL",
        ),
    },
)


__all__ = [
    "field",
    "declare",
    "get",
    "settings",
    "config_file",
    "set_config_file",
    "write_defaults",
    "ConfigError",
    "ConfigRuntimeError",
    "ConfigValidationError",
    "SchemaError",
]
