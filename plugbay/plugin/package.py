"""
Plugin Package Model.

A Package is a manifest plus its resolved file contents: a small virtual file
system mapping filename -> ContentBlob.

Key features:
- Self-describing content blobs (MIME + bytes) serialized as data URIs
- URL references for remotely hosted files
- Wire/config (de)serialization
- Installability check
"""

import base64
import binascii
import mimetypes
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import unquote_to_bytes

from plugbay.errors import AssetMissingError, ValidationError
from plugbay.plugin.manifest import Manifest, manifest_from_dict

DEFAULT_MIME = "application/octet-stream"

_MIME_OVERRIDES = {
    ".py": "text/x-python",
    ".js": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
}


def guess_mime(filename: str) -> str:
    """
    Guess the MIME type of a package file from its extension.

    Args:
        filename: File name or relative path

    Returns:
        MIME type string
    """
    for suffix, mime in _MIME_OVERRIDES.items():
        if filename.lower().endswith(suffix):
            return mime
    mime, _ = mimetypes.guess_type(filename)
    return mime or DEFAULT_MIME


@dataclass(frozen=True)
class ContentBlob:
    """
    Opaque, self-describing file payload.

    Attributes:
        mime: MIME type of the content
        data: Raw content bytes (empty for URL references)
        url: Remote location, set instead of data for hosted files
    """

    mime: str
    data: bytes = b""
    url: str | None = None

    @classmethod
    def for_file(cls, filename: str, data: bytes) -> "ContentBlob":
        """Wrap raw file bytes, guessing the MIME type from the filename."""
        return cls(mime=guess_mime(filename), data=data)

    @classmethod
    def from_uri(cls, uri: str) -> "ContentBlob":
        """
        Decode a data URI (or keep an http(s) URL as a reference).

        Args:
            uri: data:<mime>;base64,<payload> or http(s)://... string

        Returns:
            ContentBlob

        Raises:
            ValidationError: If the URI cannot be decoded
        """
        if uri.startswith(("http://", "https://")):
            return cls(mime=guess_mime(uri.split("?", 1)[0]), url=uri)

        if not uri.startswith("data:") or "," not in uri:
            raise ValidationError(f"Unsupported content URI: {uri[:40]!r}")

        header, payload = uri[5:].split(",", 1)
        params = header.split(";")
        mime = params[0] or DEFAULT_MIME
        try:
            if "base64" in params[1:]:
                data = base64.b64decode(payload, validate=True)
            else:
                data = unquote_to_bytes(payload)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Corrupt data URI payload: {e}") from e

        return cls(mime=mime, data=data)

    def to_uri(self) -> str:
        """Serialize as a data URI (or the URL reference itself)."""
        if self.url:
            return self.url
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime};base64,{payload}"

    @property
    def is_remote(self) -> bool:
        return self.url is not None


@dataclass(frozen=True)
class Package:
    """
    A manifest plus its resolved file contents.

    Attributes:
        manifest: Validated plugin manifest
        files: Virtual file system (filename -> ContentBlob)
        enabled: Whether the host should activate the plugin
    """

    manifest: Manifest
    files: dict[str, ContentBlob] = field(default_factory=dict)
    enabled: bool = False

    @property
    def id(self) -> str:
        return self.manifest.id

    @property
    def main_blob(self) -> ContentBlob | None:
        return self.files.get(self.manifest.main)

    @property
    def style_blob(self) -> ContentBlob | None:
        if not self.manifest.style:
            return None
        return self.files.get(self.manifest.style)

    def ensure_installable(self) -> None:
        """
        Check the package carries its entry point.

        Raises:
            AssetMissingError: If files[manifest.main] is absent
        """
        if self.manifest.main not in self.files:
            raise AssetMissingError(
                f"Entry file '{self.manifest.main}' not found in package {self.id}"
            )

    def with_enabled(self, enabled: bool) -> "Package":
        """Return a copy with the enabled flag set."""
        return replace(self, enabled=enabled)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to the wire/config shape.

        Returns:
            {id, manifest, files, enabled} with files as data URIs
        """
        return {
            "id": self.id,
            "manifest": self.manifest.to_dict(),
            "files": {name: blob.to_uri() for name, blob in self.files.items()},
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Package":
        """
        Deserialize from the wire/config shape.

        Args:
            data: {id, manifest, files, enabled} dictionary

        Returns:
            Package

        Raises:
            ValidationError: If the payload is malformed
        """
        if not isinstance(data, dict):
            raise ValidationError("Package payload must be an object")

        manifest = manifest_from_dict(data.get("manifest"))
        if data.get("id", manifest.id) != manifest.id:
            raise ValidationError(
                f"Package id {data.get('id')!r} does not match manifest id {manifest.id!r}"
            )

        raw_files = data.get("files") or {}
        if not isinstance(raw_files, dict):
            raise ValidationError("'files' must be an object of filename -> content")

        files = {}
        for name, uri in raw_files.items():
            if not isinstance(uri, str):
                raise ValidationError(f"Content for '{name}' must be a string")
            files[name] = ContentBlob.from_uri(uri)

        return cls(manifest=manifest, files=files, enabled=bool(data.get("enabled", False)))
