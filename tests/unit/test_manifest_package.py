"""
Tests for Manifest and Package models.

This test suite covers:
1. Manifest parsing (valid/invalid cases)
2. Version string validation
3. Content blob data URIs and URL references
4. Package wire shape and installability
"""

import json

import pytest

from plugbay.errors import AssetMissingError, ValidationError
from plugbay.plugin.manifest import Manifest, PluginKind, parse_manifest
from plugbay.plugin.package import ContentBlob, Package, guess_mime


class TestManifestParsing:
    """Test manifest parsing and validation."""

    def test_parse_valid_manifest(self, make_manifest_json):
        """Should parse a valid manifest successfully."""
        manifest = parse_manifest(make_manifest_json(style="style.css", type="theme"))

        assert manifest.id == "com.example.tool"
        assert manifest.name == "Example Tool"
        assert manifest.version == "1.0.0"
        assert manifest.main == "index.py"
        assert manifest.global_var == "ExampleTool"
        assert manifest.style == "style.css"
        assert manifest.kind is PluginKind.THEME

    def test_parse_minimal_manifest(self, make_manifest_json):
        """Should default description, kind and style."""
        manifest = parse_manifest(make_manifest_json(description=None))

        assert manifest.description == ""
        assert manifest.kind is PluginKind.TOOL
        assert manifest.style is None

    def test_parse_bytes_with_bom(self, make_manifest_json):
        """Should accept UTF-8 bytes with a byte order mark."""
        raw = b"\xef\xbb\xbf" + make_manifest_json().encode("utf-8")
        assert parse_manifest(raw).id == "com.example.tool"

    @pytest.mark.parametrize("field", ["id", "name", "main", "globalVar"])
    def test_missing_required_field(self, make_manifest_json, field):
        """Should name the missing required field."""
        with pytest.raises(ValidationError, match=f"Missing required field: {field}"):
            parse_manifest(make_manifest_json(**{field: None}))

    def test_blank_required_field(self, make_manifest_json):
        """Should treat whitespace-only fields as missing."""
        with pytest.raises(ValidationError, match="Missing required field: main"):
            parse_manifest(make_manifest_json(main="   "))

    def test_invalid_json(self):
        """Should reject content that is not JSON."""
        with pytest.raises(ValidationError, match="not valid JSON"):
            parse_manifest("{not json")

    def test_non_object_manifest(self):
        """Should reject a JSON array."""
        with pytest.raises(ValidationError, match="JSON object"):
            parse_manifest("[]")

    def test_invalid_type(self, make_manifest_json):
        """Should reject unknown plugin types."""
        with pytest.raises(ValidationError, match="Invalid plugin type"):
            parse_manifest(make_manifest_json(type="widget"))

    def test_to_dict_uses_wire_keys(self, make_manifest_json):
        """Should serialize globalVar/type and omit unset style."""
        data = parse_manifest(make_manifest_json()).to_dict()

        assert data["globalVar"] == "ExampleTool"
        assert data["type"] == "tool"
        assert "style" not in data
        assert "global_var" not in data


class TestVersionValidation:
    """Test manifest version strings."""

    @pytest.mark.parametrize("version", ["1.0", "1.0.0", "2.10.3.4", "1.0.0-beta.1", "1.0.0+build5"])
    def test_valid_versions(self, make_manifest_json, version):
        """Should accept dotted versions with optional suffix."""
        assert parse_manifest(make_manifest_json(version=version)).version == version

    @pytest.mark.parametrize("version", ["1", "v1.0.0", "1.0.", "latest", ""])
    def test_invalid_versions(self, make_manifest_json, version):
        """Should reject malformed versions."""
        with pytest.raises(ValidationError, match="Invalid version"):
            parse_manifest(make_manifest_json(version=version))

    def test_non_string_version(self):
        """Should reject numeric versions."""
        data = {"id": "a", "name": "A", "main": "m.py", "globalVar": "A", "version": 1.0}
        with pytest.raises(ValidationError, match="Invalid version"):
            parse_manifest(json.dumps(data))


class TestContentBlob:
    """Test content blob encoding."""

    def test_guess_mime(self):
        """Should map package file extensions to MIME types."""
        assert guess_mime("index.py") == "text/x-python"
        assert guess_mime("bundle.JS") == "text/javascript"
        assert guess_mime("style.css") == "text/css"
        assert guess_mime("blob.unknownext") == "application/octet-stream"

    def test_data_uri(self):
        """Should encode content as a base64 data URI."""
        blob = ContentBlob.for_file("style.css", b"body {}")
        uri = blob.to_uri()

        assert uri.startswith("data:text/css;base64,")
        assert ContentBlob.from_uri(uri) == blob

    def test_plain_data_uri(self):
        """Should decode percent-encoded data URIs."""
        blob = ContentBlob.from_uri("data:text/plain,hello%20world")
        assert blob.mime == "text/plain"
        assert blob.data == b"hello world"

    def test_url_reference(self):
        """Should keep http(s) URLs as remote references."""
        blob = ContentBlob.from_uri("https://cdn.example.com/plugin/index.js?v=2")

        assert blob.is_remote
        assert blob.mime == "text/javascript"
        assert blob.to_uri() == "https://cdn.example.com/plugin/index.js?v=2"

    def test_rejects_unknown_scheme(self):
        """Should reject URIs that are neither data nor http(s)."""
        with pytest.raises(ValidationError, match="Unsupported content URI"):
            ContentBlob.from_uri("file:///etc/passwd")

    def test_rejects_corrupt_base64(self):
        """Should reject corrupt base64 payloads."""
        with pytest.raises(ValidationError, match="Corrupt data URI"):
            ContentBlob.from_uri("data:text/css;base64,***")


class TestPackage:
    """Test package model."""

    def test_wire_shape(self, make_package):
        """Should serialize to {id, manifest, files, enabled}."""
        package = make_package(style="body {}")
        data = package.to_dict()

        assert set(data) == {"id", "manifest", "files", "enabled"}
        assert data["id"] == package.manifest.id
        assert set(data["files"]) == {"index.py", "style.css"}
        assert Package.from_dict(data) == package

    def test_from_dict_id_mismatch(self, make_package):
        """Should reject payloads whose id differs from the manifest id."""
        data = make_package().to_dict()
        data["id"] = "com.example.other"

        with pytest.raises(ValidationError, match="does not match manifest id"):
            Package.from_dict(data)

    def test_from_dict_bad_files(self, make_package):
        """Should reject non-string file content."""
        data = make_package().to_dict()
        data["files"]["index.py"] = 42

        with pytest.raises(ValidationError, match="must be a string"):
            Package.from_dict(data)

    def test_ensure_installable(self, make_package):
        """Should require the entry file."""
        package = make_package()
        package.ensure_installable()

        broken = Package(manifest=package.manifest, files={})
        with pytest.raises(AssetMissingError, match="index.py"):
            broken.ensure_installable()

    def test_with_enabled_is_a_copy(self, make_package):
        """Should leave the original package untouched."""
        package = make_package(enabled=True)
        disabled = package.with_enabled(False)

        assert package.enabled is True
        assert disabled.enabled is False
        assert disabled.manifest is package.manifest

    def test_style_blob(self, make_package):
        """Should expose the style blob only when declared."""
        assert make_package().style_blob is None
        assert make_package(style="a {}").style_blob.data == b"a {}"

    def test_manifest_referenced_files(self):
        """Should list main before style."""
        manifest = Manifest(
            id="x", name="X", version="1.0", description="", main="m.py",
            global_var="X", style="s.css",
        )
        assert manifest.referenced_files() == ["m.py", "s.css"]
