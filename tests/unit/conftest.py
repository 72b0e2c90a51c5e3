"""Shared fixtures for plugbay unit tests."""

import io
import json
import zipfile

import pytest

from plugbay.plugin.manifest import Manifest, PluginKind
from plugbay.plugin.package import ContentBlob, Package


def build_package(
    plugin_id: str = "com.example.tool",
    *,
    global_var: str = "ExampleTool",
    code: str | None = None,
    style: str | None = None,
    enabled: bool = True,
    kind: PluginKind = PluginKind.TOOL,
    version: str = "1.0.0",
) -> Package:
    if code is None:
        code = f'{global_var} = {{"Component": "view", "version": "{version}"}}\n'
    manifest = Manifest(
        id=plugin_id,
        name=f"Plugin {plugin_id}",
        version=version,
        description="Test plugin",
        main="index.py",
        global_var=global_var,
        kind=kind,
        style="style.css" if style is not None else None,
    )
    files = {"index.py": ContentBlob.for_file("index.py", code.encode("utf-8"))}
    if style is not None:
        files["style.css"] = ContentBlob.for_file("style.css", style.encode("utf-8"))
    return Package(manifest=manifest, files=files, enabled=enabled)


def build_archive(files: dict[str, bytes | str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def manifest_json(**overrides) -> str:
    data = {
        "id": "com.example.tool",
        "name": "Example Tool",
        "version": "1.0.0",
        "description": "Example",
        "main": "index.py",
        "globalVar": "ExampleTool",
    }
    data.update(overrides)
    return json.dumps({k: v for k, v in data.items() if v is not None})


@pytest.fixture
def make_package():
    """Factory building enabled test packages."""
    return build_package


@pytest.fixture
def make_archive():
    """Factory building zip archives from a filename -> content mapping."""
    return build_archive


@pytest.fixture
def make_manifest_json():
    """Factory rendering manifest.json text (None drops a field)."""
    return manifest_json
