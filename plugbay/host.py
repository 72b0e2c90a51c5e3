"""
Plugin Host.

Glue between ingestion, the lifecycle manager, the loader and the disk
protocol client: the object a host application (or the pm CLI) talks to.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from plugbay.disk.client import DestroyJob, DiskClient
from plugbay.errors import GuardError
from plugbay.plugin.defaults import builtin_packages
from plugbay.plugin.ingest import export_archive, ingest_archive
from plugbay.plugin.lifecycle import LifecycleManager
from plugbay.plugin.loader import LoadResult, PluginLoader
from plugbay.plugin.manifest import PluginKind
from plugbay.plugin.package import Package
from plugbay.plugin.store import HostConfigStore

logger = logging.getLogger(__name__)


class PluginHost:
    """
    High-level plugin operations for a host application.

    Example:
        host = PluginHost.from_settings(plugbay.config.settings())
        await host.start()
        package = await host.install_archive(Path("tool.zip").read_bytes())
    """

    def __init__(
        self,
        lifecycle: LifecycleManager,
        disk: DiskClient | None = None,
        loader: PluginLoader | None = None,
        builtins: Iterable[Package] | None = None,
    ):
        """
        Initialize PluginHost.

        Args:
            lifecycle: Lifecycle manager owning the host configuration
            disk: Disk protocol client (None for hosts without a repository)
            loader: Dynamic loader (a fresh one if omitted)
            builtins: Built-in default packages (the shipped set if omitted)
        """
        self.lifecycle = lifecycle
        self.disk = disk
        self.loader = loader or PluginLoader()
        self.builtins = list(builtins) if builtins is not None else builtin_packages()

    @classmethod
    def from_settings(cls, cfg) -> "PluginHost":
        """
        Build a host from the plugbay settings section.

        Args:
            cfg: ConfigProxy for the plugbay section
        """
        disk = DiskClient(cfg.server_url)
        lifecycle = LifecycleManager(HostConfigStore(Path(cfg.host_config)), disk=disk)
        return cls(lifecycle, disk=disk)

    async def start(self) -> dict[str, LoadResult]:
        """
        Reconcile built-in defaults and load every enabled plugin.

        Returns:
            Dict of plugin id -> LoadResult
        """
        self.lifecycle.reconcile_defaults(self.builtins)
        return await self.bootstrap()

    async def bootstrap(self) -> dict[str, LoadResult]:
        return await self.loader.bootstrap(self.lifecycle.installed())

    async def repository(self) -> list[Package]:
        """
        Union of built-in defaults and disk entries (disk wins on id clashes).

        Returns:
            Repository entries sorted by id
        """
        entries = {package.id: package.with_enabled(False) for package in self.builtins}
        if self.disk is not None:
            for entry in await self.disk.list():
                entries[entry.id] = entry
        return sorted(entries.values(), key=lambda entry: entry.id)

    async def available(self) -> list[Package]:
        return self.lifecycle.available(await self.repository())

    async def blocked(self) -> list[Package]:
        return self.lifecycle.blocked_entries(await self.repository())

    async def upload_archive(self, data: bytes) -> Package:
        """
        Ingest an archive and store it in the repository without installing it.

        Raises:
            ValidationError, AssetMissingError: If the archive is invalid
            NetworkError, ServerIOError: If the upload fails
            GuardError: If no disk repository is configured
        """
        package = ingest_archive(data, enabled=False)
        if self.disk is None:
            raise GuardError("No disk repository configured; cannot upload plugins")
        await self.disk.upload(package)
        return package

    async def install_archive(self, data: bytes) -> Package:
        """
        Ingest an archive, store it in the repository and install it enabled.

        Uploading re-installs ids that were blocked and lifts the block.

        Raises:
            ValidationError, AssetMissingError: If the archive is invalid
            NetworkError, ServerIOError: If the upload fails
        """
        package = ingest_archive(data, enabled=True)
        if self.disk is not None:
            await self.disk.upload(package)
        return self.lifecycle.install(package)

    async def install(self, plugin_id: str) -> Package:
        """
        Install a repository entry by id.

        Raises:
            GuardError: If the id is blocked or not in the repository
        """
        if self.lifecycle.is_blocked(plugin_id):
            raise GuardError(f"Plugin {plugin_id} is blocked; restore it before installing")
        for entry in await self.repository():
            if entry.id == plugin_id:
                return self.lifecycle.install(entry)
        raise GuardError(f"Plugin {plugin_id} not found in repository")

    async def resolve(self, plugin_id: str) -> LoadResult:
        """
        Resolve an installed plugin's entry point.

        Raises:
            GuardError: If the plugin is not installed
        """
        package = self.lifecycle.get(plugin_id)
        if package is None:
            raise GuardError(f"Plugin {plugin_id} is not installed")
        return await self.loader.resolve(package)

    async def destroy(self, plugin_id: str) -> DestroyJob:
        return await self.lifecycle.hard_delete(plugin_id)

    def reinstall_defaults(self) -> int:
        """Re-add built-in packages the user removed; returns how many were added."""
        return self.lifecycle.reinstall_defaults(self.builtins)

    def tools(self) -> list[Package]:
        """Enabled tool plugins (each contributes a view to the host)."""
        return [
            package
            for package in self.lifecycle.enabled()
            if package.manifest.kind is PluginKind.TOOL
        ]

    def export(self, plugin_id: str) -> bytes:
        """
        Export an installed plugin as a portable archive.

        Raises:
            GuardError: If the plugin is not installed
        """
        package = self.lifecycle.get(plugin_id)
        if package is None:
            raise GuardError(f"Plugin {plugin_id} is not installed")
        return export_archive(package)

    async def aclose(self) -> None:
        if self.disk is not None:
            await self.disk.aclose()
