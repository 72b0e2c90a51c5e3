"""
Plugin Package Ingestion.

This module turns an uploaded zip archive into a validated Package and back.

Key features:
- manifest.json discovery (archive root, single wrapper directory, public/, dist/)
- Manifest validation before any file is read
- Resolution of main/style entries relative to the manifest
- Safe path normalization (no absolute or parent-relative entries)
- Export of a single package as a portable archive
"""

import io
import json
import logging
import zipfile
from pathlib import PurePosixPath

from plugbay.errors import AssetMissingError, ValidationError
from plugbay.plugin.manifest import MANIFEST_FILENAME, parse_manifest
from plugbay.plugin.package import ContentBlob, Package

logger = logging.getLogger(__name__)

# Build output directories searched when the manifest is not at the root
_WELL_KNOWN_DIRS = ("public", "dist")


def _normalize_entry(name: str) -> str:
    """
    Normalize an archive entry or manifest file reference.

    Args:
        name: Raw entry name

    Returns:
        Normalized POSIX relative path

    Raises:
        ValidationError: If the path escapes the package
    """
    normalized = name.replace("\\", "/").strip()
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or ".." in pure.parts:
        raise ValidationError(f"Unsafe path in plugin archive: {name!r}")
    return pure.as_posix()


def _find_manifest_dir(entries: set[str]) -> str | None:
    """
    Locate the directory holding manifest.json.

    Args:
        entries: Normalized file entry names

    Returns:
        Directory prefix ("" for root, "dir/" otherwise), or None if absent
    """
    if MANIFEST_FILENAME in entries:
        return ""

    # Archives zipped from a folder wrap everything in one directory
    top_level = {entry.split("/", 1)[0] for entry in entries if "/" in entry}
    if len(top_level) == 1 and all("/" in entry for entry in entries):
        prefix = f"{top_level.pop()}/"
        if f"{prefix}{MANIFEST_FILENAME}" in entries:
            return prefix

    for directory in _WELL_KNOWN_DIRS:
        if f"{directory}/{MANIFEST_FILENAME}" in entries:
            return f"{directory}/"

    return None


def ingest_archive(data: bytes, *, enabled: bool = True) -> Package:
    """
    Validate a plugin archive and extract it into a Package.

    Nothing is committed anywhere; the caller decides whether to install the
    returned Package or upload it to the repository.

    Args:
        data: Zip archive bytes
        enabled: Initial enabled flag (True for direct install, False for discovery)

    Returns:
        Complete Package carrying main and (if declared) style files

    Raises:
        ValidationError: If the archive or its manifest is invalid
        AssetMissingError: If main/style is not present in the archive
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ValidationError(f"Plugin archive is not a valid zip file: {e}") from e

    with archive:
        entries = {
            _normalize_entry(info.filename): info.filename
            for info in archive.infolist()
            if not info.is_dir()
        }

        base = _find_manifest_dir(set(entries))
        if base is None:
            raise ValidationError("Invalid plugin: missing manifest.json")

        manifest = parse_manifest(archive.read(entries[f"{base}{MANIFEST_FILENAME}"]))

        files: dict[str, ContentBlob] = {}
        for filename in manifest.referenced_files():
            key = f"{base}{_normalize_entry(filename)}"
            if key not in entries:
                raise AssetMissingError(
                    f"Invalid plugin: file '{filename}' referenced by manifest "
                    f"not found in archive"
                )
            files[filename] = ContentBlob.for_file(filename, archive.read(entries[key]))

    logger.debug("Ingested plugin %s v%s", manifest.id, manifest.version)
    return Package(manifest=manifest, files=files, enabled=enabled)


def export_archive(package: Package) -> bytes:
    """
    Write a package as a standalone zip archive.

    Args:
        package: Package to export (URL-referenced files are not embeddable)

    Returns:
        Zip archive bytes with manifest.json and every package file at the root

    Raises:
        ValidationError: If a file is only a remote reference
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(MANIFEST_FILENAME, json.dumps(package.manifest.to_dict(), indent=2))
        for filename, blob in sorted(package.files.items()):
            if blob.is_remote:
                raise ValidationError(
                    f"Cannot export '{filename}': content is a remote reference ({blob.url})"
                )
            zf.writestr(_normalize_entry(filename), blob.data)
    return buffer.getvalue()
