"""
Disk Repository.

Physical storage for uploaded plugin packages: one directory per package
under the repository root.

Layout written by upload():

    <root>/<sanitized id>/public/manifest.json
    <root>/<sanitized id>/public/<main>
    <root>/<sanitized id>/public/<style>

Directories checked in manually may instead keep the manifest under dist/ or
at the directory root.
"""

import json
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from plugbay.errors import PluginError, ServerIOError
from plugbay.plugin.manifest import MANIFEST_FILENAME, Manifest, parse_manifest
from plugbay.plugin.package import ContentBlob, Package

logger = logging.getLogger(__name__)

_MANIFEST_LOCATIONS = (
    Path("public") / MANIFEST_FILENAME,
    Path("dist") / MANIFEST_FILENAME,
    Path(MANIFEST_FILENAME),
)


def sanitize_id(plugin_id: str) -> str:
    """
    Turn a plugin id into a filesystem-safe directory name.

    Args:
        plugin_id: Plugin id

    Returns:
        Id with every character outside [A-Za-z0-9.-] replaced by "_"
    """
    safe = re.sub(r"[^a-zA-Z0-9.-]", "_", plugin_id)
    # Pure-dot names would address the root or its parent
    if set(safe) <= {"."}:
        safe = safe.replace(".", "_")
    return safe


def _inside(base: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(base.resolve())
        return True
    except ValueError:
        return False


class DiskRepository:
    """
    Directory-backed plugin repository.

    Every method works on the filesystem directly; nothing is cached.
    """

    def __init__(self, root: Path):
        """
        Initialize DiskRepository.

        Args:
            root: Repository root directory (created on first upload)
        """
        self.root = Path(root)

    def _find_manifest(self, plugin_dir: Path) -> Path | None:
        for location in _MANIFEST_LOCATIONS:
            candidate = plugin_dir / location
            if candidate.is_file():
                return candidate
        return None

    def _read_file(self, plugin_dir: Path, manifest_dir: Path, filename: str) -> bytes | None:
        # Files resolve against the manifest directory first, then the package root
        for base in (manifest_dir, plugin_dir):
            path = base / filename
            if _inside(plugin_dir, path) and path.is_file():
                return path.read_bytes()
        return None

    def _load_entry(self, plugin_dir: Path) -> Package | None:
        manifest_path = self._find_manifest(plugin_dir)
        if manifest_path is None:
            return None

        manifest = parse_manifest(manifest_path.read_bytes())
        files: dict[str, ContentBlob] = {}
        for filename in manifest.referenced_files():
            content = self._read_file(plugin_dir, manifest_path.parent, filename)
            if content is None:
                if filename == manifest.main:
                    logger.warning(
                        "Skipping %s: entry file '%s' is missing", plugin_dir.name, filename
                    )
                    return None
                continue
            files[filename] = ContentBlob.for_file(filename, content)

        return Package(manifest=manifest, files=files, enabled=False)

    def list(self) -> list[Package]:
        """
        Scan storage for package directories.

        Returns:
            Fully materialized repository entries (enabled=False), sorted by id;
            an empty list when the root does not exist
        """
        if not self.root.is_dir():
            return []

        entries = []
        for plugin_dir in sorted(self.root.iterdir()):
            if not plugin_dir.is_dir() or plugin_dir.name.startswith("."):
                continue
            try:
                entry = self._load_entry(plugin_dir)
            except (PluginError, OSError) as e:
                logger.warning("Failed to read plugin directory %s: %s", plugin_dir.name, e)
                continue
            if entry is not None:
                entries.append(entry)

        return sorted(entries, key=lambda entry: entry.id)

    def upload(self, package: Package) -> Path:
        """
        Write a package to storage, replacing any directory with the same sanitized id.

        The package is staged in a hidden sibling directory and swapped in
        only once every file is written; a failed upload leaves the previous
        version in place.

        Args:
            package: Package to store (its files must carry content)

        Returns:
            Package directory

        Raises:
            ServerIOError: If files cannot be written
        """
        safe_id = sanitize_id(package.id)
        plugin_dir = self.root / safe_id

        # Check every file before touching disk
        for filename, blob in package.files.items():
            if not _inside(plugin_dir / "public", plugin_dir / "public" / filename):
                raise ServerIOError(f"Refusing to write outside the package: {filename}")
            if blob.is_remote:
                raise ServerIOError(f"Cannot store remote reference '{filename}' on disk")

        staging: Path | None = None
        backup = self.root / f".{safe_id}.old"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{safe_id}.", suffix=".tmp", dir=self.root))
            public_dir = staging / "public"
            public_dir.mkdir()

            (public_dir / MANIFEST_FILENAME).write_text(
                json.dumps(package.manifest.to_dict(), indent=2), encoding="utf-8"
            )
            for filename, blob in package.files.items():
                target = public_dir / filename
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(blob.data)

            if backup.exists():
                shutil.rmtree(backup)
            if plugin_dir.exists():
                os.replace(plugin_dir, backup)
            os.replace(staging, plugin_dir)
            staging = None
            shutil.rmtree(backup, ignore_errors=True)
        except OSError as e:
            logger.error("Failed to write plugin %s: %s", package.id, e)
            if backup.exists() and not plugin_dir.exists():
                os.replace(backup, plugin_dir)
            raise ServerIOError(f"Failed to write plugin {package.id}: {e}") from e
        finally:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        logger.info("Stored plugin %s in %s", package.id, plugin_dir)
        return plugin_dir

    def locate(self, plugin_id: str) -> Path | None:
        """
        Find the directory holding a package.

        Args:
            plugin_id: Plugin id (raw or sanitized)

        Returns:
            Directory whose manifest carries the id, else the sanitized-name
            directory if present, else None
        """
        if not self.root.is_dir():
            return None

        for plugin_dir in self.root.iterdir():
            if not plugin_dir.is_dir() or plugin_dir.name.startswith("."):
                continue
            manifest_path = self._find_manifest(plugin_dir)
            if manifest_path is None:
                continue
            try:
                manifest: Manifest = parse_manifest(manifest_path.read_bytes())
            except (PluginError, OSError):
                continue
            if plugin_id in (manifest.id, sanitize_id(manifest.id)):
                return plugin_dir

        fallback = self.root / sanitize_id(plugin_id)
        return fallback if fallback.is_dir() else None

    def remove(self, plugin_id: str) -> bool:
        """
        Delete a package directory.

        Args:
            plugin_id: Plugin id (raw or sanitized)

        Returns:
            True if a directory was deleted, False if already absent

        Raises:
            ServerIOError: If deletion fails
        """
        target = self.locate(plugin_id)
        if target is None:
            logger.info("Plugin %s not found on disk; nothing to delete", plugin_id)
            return False

        try:
            shutil.rmtree(target)
        except OSError as e:
            logger.error("Failed to delete %s: %s", target, e)
            raise ServerIOError(f"Failed to delete plugin {plugin_id}: {e}") from e

        logger.info("Physically deleted plugin %s from %s", plugin_id, target)
        return True
