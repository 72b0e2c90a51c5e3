"""
Host Configuration Store.

The host configuration is a single aggregate value (installed packages,
blocked ids, seen-default ids) persisted as TOML. It is immutable: every
mutation builds a new HostConfig that replaces the old one as a whole.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugbay.config.toml_handler import TOMLError, read_toml, write_toml
from plugbay.errors import ServerIOError, ValidationError
from plugbay.plugin.package import Package

logger = logging.getLogger(__name__)

CONFIG_VERSION = 1


@dataclass(frozen=True)
class HostConfig:
    """
    Client-resident plugin configuration.

    Attributes:
        installed: Installed packages, in installation order
        blocked: Ids hidden from the repository view
        seen_defaults: Built-in ids auto-installed at least once
    """

    installed: tuple[Package, ...] = ()
    blocked: frozenset[str] = field(default_factory=frozenset)
    seen_defaults: frozenset[str] = field(default_factory=frozenset)

    def find(self, plugin_id: str) -> Package | None:
        for package in self.installed:
            if package.id == plugin_id:
                return package
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": CONFIG_VERSION,
            "installed": [package.to_dict() for package in self.installed],
            "blocked": sorted(self.blocked),
            "seenDefaults": sorted(self.seen_defaults),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HostConfig":
        """
        Build a HostConfig from its persisted shape.

        Raises:
            ValidationError: If the data is malformed or from a newer schema
        """
        version = data.get("version", CONFIG_VERSION)
        if not isinstance(version, int) or version > CONFIG_VERSION:
            raise ValidationError(f"Unsupported host config version: {version!r}")

        return cls(
            installed=tuple(Package.from_dict(item) for item in data.get("installed", [])),
            blocked=frozenset(data.get("blocked", [])),
            seen_defaults=frozenset(data.get("seenDefaults", [])),
        )


class HostConfigStore:
    """
    TOML persistence for HostConfig.

    Single writer; concurrent writers are not reconciled (last write wins).
    """

    def __init__(self, path: Path):
        """
        Initialize HostConfigStore.

        Args:
            path: TOML file holding the host configuration
        """
        self.path = Path(path)

    def load(self) -> HostConfig:
        """
        Load the persisted configuration.

        Returns:
            HostConfig (empty if the file does not exist yet)

        Raises:
            ServerIOError: If the file cannot be read
            ValidationError: If the content is malformed
        """
        if not self.path.exists():
            return HostConfig()
        try:
            data = read_toml(self.path)
        except TOMLError as e:
            raise ServerIOError(f"Failed to read host config: {e}") from e
        return HostConfig.from_dict(data)

    def save(self, config: HostConfig) -> None:
        """
        Persist the configuration, replacing the previous file.

        Raises:
            ServerIOError: If the file cannot be written
        """
        try:
            write_toml(self.path, config.to_dict())
        except TOMLError as e:
            logger.error("Failed to persist host config to %s: %s", self.path, e)
            raise ServerIOError(f"Failed to write host config: {e}") from e


class MemoryConfigStore:
    """In-memory store for hosts that do not persist their configuration."""

    def __init__(self, config: HostConfig | None = None):
        self.config = config or HostConfig()
        self.saves = 0

    def load(self) -> HostConfig:
        return self.config

    def save(self, config: HostConfig) -> None:
        self.config = config
        self.saves += 1
