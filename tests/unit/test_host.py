"""
Tests for PluginHost end-to-end flows.

This test suite covers:
1. Upload -> discover -> install -> toggle -> uninstall
2. Reinstall yields an identical package
3. Block and hard delete through the disk server
4. Built-in defaults joining the repository view
5. Startup loading
"""

import httpx
import pytest
import pytest_asyncio

from plugbay.disk.client import DestroyState, DiskClient
from plugbay.disk.repository import DiskRepository
from plugbay.disk.server import create_app
from plugbay.errors import GuardError, ValidationError
from plugbay.host import PluginHost
from plugbay.plugin.defaults import ENTERPRISE_THEME_ID, builtin_packages
from plugbay.plugin.lifecycle import LifecycleManager
from plugbay.plugin.loader import PluginLoader
from plugbay.plugin.manifest import PluginKind
from plugbay.plugin.store import MemoryConfigStore

SCENARIO_MANIFEST = {"id": "com.x.tool", "main": "index.js", "globalVar": "X", "name": "X Tool"}


@pytest.fixture
def repository(tmp_path):
    return DiskRepository(tmp_path / "plugins")


@pytest.fixture
def halts():
    return []


@pytest_asyncio.fixture
async def host(repository, halts):
    app = create_app(repository, halt_delay=0, halt=lambda: halts.append(True))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://disk.test") as client:
        disk = DiskClient("http://disk.test", http_client=client)
        lifecycle = LifecycleManager(MemoryConfigStore(), disk=disk)
        loader = PluginLoader()
        yield PluginHost(lifecycle, disk=disk, loader=loader, builtins=[])
        loader.reset()


def scenario_archive(make_archive, make_manifest_json):
    return make_archive(
        {
            "manifest.json": make_manifest_json(**SCENARIO_MANIFEST),
            "index.js": "export default {}",
        }
    )


class TestRepositoryScenario:
    """Test the upload/install/uninstall scenario."""

    @pytest.mark.asyncio
    async def test_upload_install_toggle_uninstall(self, host, make_archive, make_manifest_json):
        """Should move a package through the full lifecycle."""
        await host.upload_archive(scenario_archive(make_archive, make_manifest_json))

        assert [entry.id for entry in await host.repository()] == ["com.x.tool"]

        await host.install("com.x.tool")
        installed = host.lifecycle.installed()
        assert [(p.id, p.enabled) for p in installed] == [("com.x.tool", True)]

        assert host.lifecycle.toggle("com.x.tool").enabled is False

        host.lifecycle.uninstall("com.x.tool")
        assert host.lifecycle.installed() == []
        assert [entry.id for entry in await host.repository()] == ["com.x.tool"]
        assert [entry.id for entry in await host.available()] == ["com.x.tool"]

    @pytest.mark.asyncio
    async def test_reinstall_identical(self, host, make_archive, make_manifest_json):
        """Should reinstall a byte-identical package."""
        data = scenario_archive(make_archive, make_manifest_json)

        first = await host.install_archive(data)
        host.lifecycle.toggle(first.id)
        host.lifecycle.uninstall(first.id)
        second = await host.install("com.x.tool")

        assert second == first
        assert second.to_dict() == first.to_dict()

    @pytest.mark.asyncio
    async def test_missing_manifest_creates_nothing(self, host, repository, make_archive):
        """Should reject the archive and leave the repository untouched."""
        with pytest.raises(ValidationError, match="missing manifest.json"):
            await host.upload_archive(make_archive({"index.js": "x"}))

        assert repository.list() == []
        assert host.lifecycle.installed() == []

    @pytest.mark.asyncio
    async def test_install_unknown_id(self, host):
        """Should reject ids absent from the repository."""
        with pytest.raises(GuardError, match="not found in repository"):
            await host.install("com.x.none")

    @pytest.mark.asyncio
    async def test_install_blocked_id(self, host, make_archive, make_manifest_json):
        """Should refuse repository installs of blocked ids until restored."""
        await host.upload_archive(scenario_archive(make_archive, make_manifest_json))
        host.lifecycle.soft_block("com.x.tool")

        with pytest.raises(GuardError, match="restore it before installing"):
            await host.install("com.x.tool")
        assert not host.lifecycle.is_installed("com.x.tool")

        host.lifecycle.restore("com.x.tool")
        package = await host.install("com.x.tool")
        assert package.enabled is True

    @pytest.mark.asyncio
    async def test_direct_upload_lifts_block(self, host, make_archive, make_manifest_json):
        """Should unblock an id re-installed from an archive, so it cannot be destroyed."""
        await host.upload_archive(scenario_archive(make_archive, make_manifest_json))
        host.lifecycle.soft_block("com.x.tool")

        await host.install_archive(scenario_archive(make_archive, make_manifest_json))

        assert host.lifecycle.is_installed("com.x.tool")
        assert host.lifecycle.config.blocked == frozenset()
        with pytest.raises(GuardError):
            await host.destroy("com.x.tool")


class TestDestroyScenario:
    """Test soft block followed by hard delete."""

    @pytest.mark.asyncio
    async def test_block_then_destroy(self, host, repository, halts, make_archive, make_manifest_json):
        """Should clear the block, delete the files and halt the server once."""
        await host.upload_archive(scenario_archive(make_archive, make_manifest_json))

        host.lifecycle.soft_block("com.x.tool")
        assert host.lifecycle.config.blocked == {"com.x.tool"}
        assert await host.available() == []
        assert [entry.id for entry in await host.blocked()] == ["com.x.tool"]

        job = await host.destroy("com.x.tool")

        assert job.plugin_id == "com.x.tool"
        assert job.state is DestroyState.HALTING
        assert host.lifecycle.config.blocked == frozenset()
        assert repository.list() == []
        assert halts == [True]


class TestDefaultsAndLoading:
    """Test built-in defaults and startup loading."""

    @pytest.mark.asyncio
    async def test_builtins_join_repository(self):
        """Should list built-ins when no disk server answers."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        host = PluginHost(
            LifecycleManager(MemoryConfigStore()),
            disk=DiskClient("http://disk.test", http_client=client),
        )

        entries = await host.repository()

        assert [entry.id for entry in entries] == [ENTERPRISE_THEME_ID]
        assert entries[0].manifest.kind is PluginKind.THEME
        await client.aclose()

    @pytest.mark.asyncio
    async def test_start_installs_defaults_disabled(self):
        """Should auto-install the shipped theme without loading it."""
        loader = PluginLoader()
        host = PluginHost(LifecycleManager(MemoryConfigStore()), loader=loader)

        results = await host.start()

        assert results == {}
        assert host.lifecycle.get(ENTERPRISE_THEME_ID).enabled is False
        assert host.tools() == []

    @pytest.mark.asyncio
    async def test_reinstall_defaults(self):
        """Should re-add a removed built-in, disabled as shipped."""
        host = PluginHost(LifecycleManager(MemoryConfigStore()), builtins=builtin_packages())
        await host.start()
        host.lifecycle.uninstall(ENTERPRISE_THEME_ID)

        await host.start()
        assert not host.lifecycle.is_installed(ENTERPRISE_THEME_ID)

        assert host.reinstall_defaults() == 1
        assert host.lifecycle.get(ENTERPRISE_THEME_ID).enabled is False
        assert host.reinstall_defaults() == 0

    @pytest.mark.asyncio
    async def test_enabled_theme_loads(self):
        """Should load the built-in theme once enabled."""
        loader = PluginLoader()
        host = PluginHost(LifecycleManager(MemoryConfigStore()), loader=loader)
        await host.start()
        host.lifecycle.toggle(ENTERPRISE_THEME_ID)

        try:
            result = await host.resolve(ENTERPRISE_THEME_ID)

            assert result.ok
            assert result.code["title"] == "Enterprise Theme Active"
            assert "Enterprise theme overrides" in loader.document.stylesheet()
        finally:
            loader.reset()

    @pytest.mark.asyncio
    async def test_tools_lists_enabled_tools(self, make_package):
        """Should only list enabled tool plugins."""
        host = PluginHost(LifecycleManager(MemoryConfigStore()), builtins=builtin_packages())
        await host.start()
        host.lifecycle.install(make_package())
        host.lifecycle.toggle(ENTERPRISE_THEME_ID)

        assert [package.id for package in host.tools()] == ["com.example.tool"]

    @pytest.mark.asyncio
    async def test_export_requires_install(self, host):
        """Should only export installed plugins."""
        with pytest.raises(GuardError, match="not installed"):
            host.export("com.x.tool")

    @pytest.mark.asyncio
    async def test_upload_without_disk(self, make_archive, make_manifest_json):
        """Should refuse uploads when no disk repository is configured."""
        host = PluginHost(LifecycleManager(MemoryConfigStore()), builtins=[])

        with pytest.raises(GuardError, match="No disk repository"):
            await host.upload_archive(scenario_archive(make_archive, make_manifest_json))
