"""
Runtime Configuration Access.

This module provides runtime access to a settings section with auto-flush on
write.

Key features:
- ConfigProxy class with attribute-based access
- Layering: schema defaults < TOML file < environment variables
- Auto-flush to TOML file on attribute write
- Validation on load and on write
"""

import os
import threading
from pathlib import Path
from typing import Any

from plugbay.config.schema import (
    ConfigField,
    ConfigValidationError,
    generate_default_config,
    validate_config,
)
from plugbay.config.toml_handler import TOMLError, read_toml, write_toml


class ConfigRuntimeError(Exception):
    """Base exception for runtime config errors."""

    pass


class ConfigProxy:
    """
    Proxy object for runtime configuration access.

    Values come from the schema defaults, overlaid by the section stored in
    the TOML file, overlaid by any environment variable a field names. Writes
    are validated and immediately flushed to the file; an environment
    override keeps winning on read until the variable is unset.

    Example:
        cfg = ConfigProxy('plugbay', schema, config_file)
        port = cfg.server_port   # Read
        cfg.server_port = 8080   # Write (auto-flushes to file)
    """

    def __init__(
        self,
        section: str,
        schema: dict[str, ConfigField],
        config_file: Path,
    ):
        """
        Initialize ConfigProxy.

        Args:
            section: Name of the settings section
            schema: Schema dictionary (field_name -> ConfigField)
            config_file: Path to the TOML config file
        """
        # Use object.__setattr__ to avoid triggering our custom __setattr__
        object.__setattr__(self, "_section", section)
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(self, "_config_file", config_file)
        object.__setattr__(self, "_lock", threading.Lock())
        object.__setattr__(self, "_stored", {})

        self._load_config()

    def _load_config(self) -> None:
        """Load the stored section from file."""
        stored: dict[str, Any] = {}
        try:
            if self._config_file.exists():
                data = read_toml(self._config_file)
                stored = dict(data.get(self._section, {}))
                validate_config(stored, self._schema)
        except (TOMLError, ConfigValidationError) as e:
            raise ConfigRuntimeError(f"Failed to load config: {e}") from e

        object.__setattr__(self, "_stored", stored)

    def _resolve(self, name: str) -> Any:
        field = self._schema[name]
        if field.env and os.environ.get(field.env) is not None:
            value = field.coerce(os.environ[field.env])
            field.validate(value)
            return value
        value = self._stored.get(name, field.default)
        if field.type_ is float and isinstance(value, int):
            value = float(value)
        return value

    def __getattr__(self, name: str) -> Any:
        """
        Get configuration value by attribute access.

        Args:
            name: Field name

        Returns:
            Field value

        Raises:
            AttributeError: If field doesn't exist in schema
        """
        if name.startswith("_"):
            return object.__getattribute__(self, name)

        if name not in self._schema:
            raise AttributeError(
                f"Configuration field '{name}' not found in schema for {self._section}"
            )

        return self._resolve(name)

    def __setattr__(self, name: str, value: Any) -> None:
        """
        Set configuration value by attribute access with auto-flush.

        Args:
            name: Field name
            value: New value

        Raises:
            AttributeError: If field doesn't exist in schema
            ConfigValidationError: If value fails validation
        """
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return

        if name not in self._schema:
            raise AttributeError(
                f"Configuration field '{name}' not found in schema for {self._section}"
            )

        self._schema[name].validate(value)

        with self._lock:
            self._stored[name] = value
            self._flush()

    def as_dict(self) -> dict[str, Any]:
        """Effective values for every field in the schema."""
        return {name: self._resolve(name) for name in self._schema}

    def defaults(self) -> dict[str, Any]:
        return generate_default_config(self._schema)

    def _flush(self) -> None:
        """
        Flush the stored section to the TOML file.

        Other sections in the file are left untouched.
        """
        try:
            data = read_toml(self._config_file) if self._config_file.exists() else {}
            data[self._section] = self._stored.copy()
            write_toml(self._config_file, data)
        except TOMLError as e:
            raise ConfigRuntimeError(f"Failed to flush config to file: {e}") from e

    def __repr__(self) -> str:
        """String representation of ConfigProxy."""
        return f"ConfigProxy({self._section}, {self.as_dict()})"
