"""
Plugin Manifest System.

This module provides manifest parsing and validation for plugins.

Key features:
- JSON decoding of manifest.json payloads
- Required field and version string validation
- Plugin kind handling (tool / theme)
- Round-trip serialization back to the manifest.json shape
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from plugbay.errors import ValidationError

MANIFEST_FILENAME = "manifest.json"

# MAJOR.MINOR[.PATCH...] with an optional pre-release/build suffix
_VERSION_RE = re.compile(r"^\d+(\.\d+)+([-+][0-9A-Za-z.-]+)?$")


class PluginKind(Enum):
    """Plugin kind enumeration."""

    TOOL = "tool"
    THEME = "theme"


@dataclass(frozen=True)
class Manifest:
    """
    Represents a plugin manifest.

    Attributes:
        id: Globally unique, reverse-domain-style identifier (join key)
        name: Human-readable plugin name
        version: Plugin version string
        description: Plugin description
        main: Entry point filename
        global_var: Namespace key the entry point is published under
        kind: Plugin kind (tool adds a view, theme is style-only)
        style: Optional stylesheet filename
    """

    id: str
    name: str
    version: str
    description: str
    main: str
    global_var: str
    kind: PluginKind = PluginKind.TOOL
    style: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to the manifest.json shape.

        Returns:
            Manifest dictionary (optional style omitted when unset)
        """
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "main": self.main,
            "globalVar": self.global_var,
            "type": self.kind.value,
        }
        if self.style:
            data["style"] = self.style
        return data

    def referenced_files(self) -> list[str]:
        """Filenames the manifest points at, main first."""
        files = [self.main]
        if self.style:
            files.append(self.style)
        return files


def validate_manifest_structure(data: Any) -> None:
    """
    Validate manifest structure and required fields.

    Args:
        data: Decoded manifest data

    Raises:
        ValidationError: If manifest structure is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("manifest.json must contain a JSON object")

    # Check required fields
    for field in ("id", "name", "main", "globalVar"):
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Missing required field: {field}")

    version = data.get("version")
    if not isinstance(version, str) or not _VERSION_RE.match(version):
        raise ValidationError(
            f"Invalid version: {version!r}. Must be a dotted version (e.g., '1.0.0')"
        )

    # Validate optional fields
    if "description" in data and not isinstance(data["description"], str):
        raise ValidationError("'description' field must be a string")

    style = data.get("style")
    if style is not None and not isinstance(style, str):
        raise ValidationError("'style' field must be a string")

    if "type" in data:
        kinds = [kind.value for kind in PluginKind]
        if data["type"] not in kinds:
            raise ValidationError(
                f"Invalid plugin type: {data['type']!r}. Expected one of {kinds}"
            )


def manifest_from_dict(data: Any) -> Manifest:
    """
    Build a Manifest from decoded manifest data.

    Args:
        data: Decoded manifest data

    Returns:
        Manifest object

    Raises:
        ValidationError: If manifest is invalid
    """
    validate_manifest_structure(data)

    return Manifest(
        id=data["id"],
        name=data["name"],
        version=data["version"],
        description=data.get("description", ""),
        main=data["main"],
        global_var=data["globalVar"],
        kind=PluginKind(data.get("type", PluginKind.TOOL.value)),
        style=data.get("style") or None,
    )


def parse_manifest(raw: bytes | str) -> Manifest:
    """
    Parse manifest.json content.

    Args:
        raw: Raw manifest.json bytes or text

    Returns:
        Manifest object

    Raises:
        ValidationError: If content is not JSON or manifest is invalid
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8-sig")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError(f"manifest.json is not valid JSON: {e}") from e

    return manifest_from_dict(data)
