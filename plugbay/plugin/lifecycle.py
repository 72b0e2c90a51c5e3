"""
Plugin Lifecycle Manager.

This module tracks which packages are installed, blocked or destroyed and
enforces the legal transitions between those states.

Per plugin id:

    Unknown -> Repository-only -> Installed(enabled) <-> Installed(disabled)
    Installed(disabled) -> (uninstall) -> Repository-only
    Repository-only -> (soft_block) -> Blocked -> (restore) -> Repository-only
    Blocked -> (direct upload) -> Installed(enabled)
    Blocked -> (hard_delete) -> Destroyed

An id is never Installed and Blocked at the same time.

Every operation is all-or-nothing: the new HostConfig is persisted first and
only then swapped in, so a failed save leaves the previous state untouched.
"""

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace

from plugbay.disk.client import DestroyJob, DiskClient
from plugbay.errors import GuardError
from plugbay.plugin.package import Package
from plugbay.plugin.store import HostConfig, HostConfigStore, MemoryConfigStore

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Plugin lifecycle state machine.

    Owns the HostConfig aggregate and applies guarded transitions to it. Each
    transition holds the lock from its guard checks through the commit.
    """

    def __init__(
        self,
        store: HostConfigStore | MemoryConfigStore,
        disk: DiskClient | None = None,
    ):
        """
        Initialize LifecycleManager.

        Args:
            store: Persistence for the host configuration
            disk: Disk protocol client used by hard_delete
        """
        self._store = store
        self._disk = disk
        self._lock = threading.RLock()
        self._config = store.load()

    @property
    def config(self) -> HostConfig:
        return self._config

    def _commit(self, config: HostConfig) -> None:
        """Persist then swap in a new configuration."""
        with self._lock:
            self._store.save(config)
            self._config = config

    # Queries

    def installed(self) -> list[Package]:
        return list(self._config.installed)

    def get(self, plugin_id: str) -> Package | None:
        return self._config.find(plugin_id)

    def is_installed(self, plugin_id: str) -> bool:
        return self._config.find(plugin_id) is not None

    def is_blocked(self, plugin_id: str) -> bool:
        return plugin_id in self._config.blocked

    def enabled(self) -> list[Package]:
        return [package for package in self._config.installed if package.enabled]

    def available(self, entries: Iterable[Package]) -> list[Package]:
        """
        Repository entries offered for installation.

        Args:
            entries: Repository entries (built-ins and disk)

        Returns:
            Entries neither installed nor blocked
        """
        return [
            entry
            for entry in entries
            if not self.is_installed(entry.id) and not self.is_blocked(entry.id)
        ]

    def blocked_entries(self, entries: Iterable[Package]) -> list[Package]:
        return [entry for entry in entries if self.is_blocked(entry.id)]

    # Transitions

    def install(self, entry: Package) -> Package:
        """
        Install a package, enabled, overwriting any installed package with the same id.

        A blocked id leaves the blocked set in the same commit.

        Args:
            entry: Repository entry or freshly ingested package

        Returns:
            The installed package

        Raises:
            AssetMissingError: If the package lacks its entry file
        """
        entry.ensure_installable()
        package = entry.with_enabled(True)

        with self._lock:
            installed = []
            replaced = False
            for current in self._config.installed:
                if current.id == package.id:
                    installed.append(package)
                    replaced = True
                else:
                    installed.append(current)
            if not replaced:
                installed.append(package)

            self._commit(
                replace(
                    self._config,
                    installed=tuple(installed),
                    blocked=self._config.blocked - {package.id},
                )
            )

        logger.info(
            "%s plugin %s v%s",
            "Reinstalled" if replaced else "Installed",
            package.id,
            package.manifest.version,
        )
        return package

    def toggle(self, plugin_id: str) -> Package:
        """
        Flip the enabled flag of an installed package.

        Raises:
            GuardError: If the package is not installed
        """
        with self._lock:
            current = self._require_installed(plugin_id)
            toggled = current.with_enabled(not current.enabled)
            self._commit(self._with_package(toggled))
        logger.info("Plugin %s %s", plugin_id, "enabled" if toggled.enabled else "disabled")
        return toggled

    def uninstall(self, plugin_id: str) -> None:
        """
        Remove a disabled package from the installed set.

        The repository entry, if any, is left in place.

        Raises:
            GuardError: If the package is not installed or still enabled
        """
        with self._lock:
            current = self._require_installed(plugin_id)
            if current.enabled:
                raise GuardError(f"Plugin {plugin_id} must be disabled before it is uninstalled")

            installed = tuple(p for p in self._config.installed if p.id != plugin_id)
            self._commit(replace(self._config, installed=installed))
        logger.info("Uninstalled plugin %s", plugin_id)

    def soft_block(self, plugin_id: str) -> None:
        """
        Hide an id from the repository view (idempotent).

        Raises:
            GuardError: If the id is installed
        """
        with self._lock:
            if self.is_installed(plugin_id):
                raise GuardError(
                    f"Plugin {plugin_id} is installed; uninstall it before removing it"
                )
            if plugin_id in self._config.blocked:
                return

            self._commit(replace(self._config, blocked=self._config.blocked | {plugin_id}))
        logger.info("Blocked plugin %s", plugin_id)

    def restore(self, plugin_id: str) -> None:
        """Return a blocked id to the repository view (idempotent)."""
        with self._lock:
            if plugin_id not in self._config.blocked:
                return

            self._commit(replace(self._config, blocked=self._config.blocked - {plugin_id}))
        logger.info("Restored plugin %s", plugin_id)

    async def hard_delete(self, plugin_id: str) -> DestroyJob:
        """
        Permanently destroy a blocked package.

        The id leaves the blocked set and a single destroy request is issued to
        the disk server. Irreversible.

        Args:
            plugin_id: Blocked plugin id

        Returns:
            DestroyJob tracking the server halt

        Raises:
            GuardError: If the id is installed or not blocked, or no disk
                client is configured
        """
        with self._lock:
            if self.is_installed(plugin_id):
                raise GuardError(f"Plugin {plugin_id} is installed; it cannot be destroyed")
            if plugin_id not in self._config.blocked:
                raise GuardError(f"Plugin {plugin_id} must be blocked before it is destroyed")
            if self._disk is None:
                raise GuardError("No disk repository configured; cannot destroy plugins")

            self._commit(replace(self._config, blocked=self._config.blocked - {plugin_id}))

        logger.info("Destroying plugin %s", plugin_id)
        return await self._disk.destroy(plugin_id)

    def reconcile_defaults(self, builtins: Iterable[Package]) -> bool:
        """
        Auto-install built-in packages once, never resurrecting removed ones.

        Unseen ids are installed (keeping the built-in's shipped enabled flag)
        or patched (keeping the existing flag) and recorded as seen. Seen ids
        are patched only while installed, always keeping their enabled flag.

        Args:
            builtins: Built-in default packages shipped with the host

        Returns:
            True if the configuration changed
        """
        with self._lock:
            installed = list(self._config.installed)
            seen = set(self._config.seen_defaults)
            index = {package.id: i for i, package in enumerate(installed)}

            for builtin in builtins:
                position = index.get(builtin.id)
                if position is not None:
                    patched = builtin.with_enabled(installed[position].enabled)
                    if patched != installed[position]:
                        installed[position] = patched
                        logger.info("Updated definition for %s", builtin.id)
                elif builtin.id not in seen and builtin.id not in self._config.blocked:
                    index[builtin.id] = len(installed)
                    installed.append(builtin)
                    logger.info("Installing default plugin %s", builtin.id)
                seen.add(builtin.id)

            updated = replace(
                self._config, installed=tuple(installed), seen_defaults=frozenset(seen)
            )
            if updated == self._config:
                return False

            self._commit(updated)
        return True

    def reinstall_defaults(self, builtins: Iterable[Package]) -> int:
        """
        Re-add every built-in package missing from the installed set.

        The explicit counterpart of reconcile_defaults(): previously removed
        or blocked built-ins come back with their shipped enabled flag.

        Args:
            builtins: Built-in default packages shipped with the host

        Returns:
            Number of packages added
        """
        with self._lock:
            installed = list(self._config.installed)
            present = {package.id for package in installed}
            added = [builtin for builtin in builtins if builtin.id not in present]
            if not added:
                return 0

            for builtin in added:
                builtin.ensure_installable()
                installed.append(builtin)

            ids = {builtin.id for builtin in added}
            self._commit(
                replace(
                    self._config,
                    installed=tuple(installed),
                    blocked=self._config.blocked - ids,
                    seen_defaults=self._config.seen_defaults | ids,
                )
            )

        logger.info("Restored %d default plugin(s)", len(added))
        return len(added)

    def _require_installed(self, plugin_id: str) -> Package:
        current = self._config.find(plugin_id)
        if current is None:
            raise GuardError(f"Plugin {plugin_id} is not installed")
        return current

    def _with_package(self, package: Package) -> HostConfig:
        installed = tuple(
            package if current.id == package.id else current
            for current in self._config.installed
        )
        return replace(self._config, installed=installed)
