"""
Configuration Schema System.

This module provides schema declaration and validation for settings sections.

Key features:
- Type-safe field definitions with constraints
- Environment variable overrides with type coercion
- Validation of values against schema
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ConfigValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers) or minimum length (for strings)
        max: Maximum value (for numbers) or maximum length (for strings)
        choices: List of allowed values (optional)
        env: Environment variable that overrides the stored value (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None
    env: str | None = None

    def __post_init__(self):
        """Validate field definition."""
        if not isinstance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
            str,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, float, str. Got {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def coerce(self, raw: str) -> Any:
        """
        Convert an environment string to this field's type.

        Args:
            raw: Raw string value

        Returns:
            Converted value

        Raises:
            ConfigValidationError: If the string cannot be converted
        """
        if self.type_ is bool:
            lowered = raw.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ConfigValidationError(f"Cannot interpret {raw!r} as bool")
        try:
            return self.type_(raw)
        except ValueError as e:
            raise ConfigValidationError(
                f"Cannot interpret {raw!r} as {self.type_.__name__}"
            ) from e

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Args:
            value: The value to validate

        Raises:
            ConfigValidationError: If validation fails
        """
        # TOML integers are acceptable where a float is declared
        if self.type_ is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)

        if not isinstance(value, self.type_):
            raise ConfigValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ConfigValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        if self.type_ in (int, float):
            if self.min is not None and value < self.min:
                raise ConfigValidationError(f"Value {value} is less than minimum {self.min}")
            if self.max is not None and value > self.max:
                raise ConfigValidationError(
                    f"Value {value} is greater than maximum {self.max}"
                )

        if self.type_ is str:
            if self.min is not None and len(value) < self.min:
                raise ConfigValidationError(
                    f"String length {len(value)} is less than minimum {self.min}"
                )
            if self.max is not None and len(value) > self.max:
                raise ConfigValidationError(
                    f"String length {len(value)} is greater than maximum {self.max}"
                )


def validate_config(config: dict[str, Any], schema: dict[str, ConfigField]) -> None:
    """
    Validate a (possibly partial) configuration dictionary against a schema.

    Fields missing from the dictionary fall back to their defaults, so only
    present values are checked.

    Args:
        config: The configuration dictionary to validate
        schema: The schema dictionary (field_name -> ConfigField)

    Raises:
        ConfigValidationError: If validation fails
    """
    for key in config:
        if key not in schema:
            raise ConfigValidationError(f"Unknown configuration field: {key}")

    for field_name, value in config.items():
        try:
            schema[field_name].validate(value)
        except ConfigValidationError as e:
            raise ConfigValidationError(f"Field '{field_name}': {e}") from e


def generate_default_config(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """
    Generate a default configuration from a schema.

    Args:
        schema: The schema dictionary (field_name -> ConfigField)

    Returns:
        A dictionary with default values for all fields
    """
    return {field_name: field.default for field_name, field in schema.items()}
