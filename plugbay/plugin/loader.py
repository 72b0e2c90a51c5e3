"""
Dynamic Plugin Loader.

This module turns an installed Package's virtual files into live code and
style inside the host process.

Key features:
- importlib integration for executing entry points as fresh modules
- Namespace bridge: loaded code publishes its entry point under globalVar
- Exactly-once injection per plugin id, even under concurrent resolves
- Load failures returned as LoadResult values, never raised

Loaded code publishes its entry point either by binding a module-level name
equal to the manifest's globalVar, or by writing into the ``__namespace__``
mapping injected into its globals:

    GalagaPlugin_Schema = {"Component": SchemaBuilder}
    # or
    __namespace__["GalagaPlugin_Schema"] = {"Component": SchemaBuilder}

Injected resources are retained when a plugin is disabled or uninstalled;
binding a new version under the same globalVar requires a process restart.
"""

import asyncio
import importlib.util
import logging
import re
import sys
from collections import Counter
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass
from types import ModuleType
from typing import Any

import httpx

from plugbay.errors import (
    AssetMissingError,
    NetworkError,
    PluginError,
    PluginRuntimeError,
)
from plugbay.plugin.package import ContentBlob, Package

logger = logging.getLogger(__name__)


def style_tag(plugin_id: str) -> str:
    return f"plugin-style-{plugin_id}"


def script_tag(plugin_id: str) -> str:
    return f"plugin-script-{plugin_id}"


def _module_name(plugin_id: str) -> str:
    return "plugbay_plugin_" + re.sub(r"\W", "_", plugin_id)


class Namespace(MutableMapping):
    """
    Process-wide registry of loaded entry points, keyed by globalVar.

    Holds at most one live value per key.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        return self._entries[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def __delitem__(self, key: str) -> None:
        del self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Namespace({sorted(self._entries)})"


class ResourceDocument:
    """
    Host document holding injected style and code resources.

    Resources are tagged by plugin id; each tag is present at most once.

    Attributes:
        styles: tag -> stylesheet blob
        scripts: tag -> plugin id of the injected code resource
        injections: plugin id -> number of code injections performed
    """

    def __init__(self) -> None:
        self.styles: dict[str, ContentBlob] = {}
        self.scripts: dict[str, str] = {}
        self.injections: Counter[str] = Counter()

    def ensure_style(self, plugin_id: str, blob: ContentBlob) -> bool:
        """
        Insert a plugin stylesheet unless one is already present.

        Args:
            plugin_id: Plugin the stylesheet belongs to
            blob: Stylesheet content

        Returns:
            True if the stylesheet was inserted
        """
        tag = style_tag(plugin_id)
        if tag in self.styles:
            return False
        self.styles[tag] = blob
        return True

    def stylesheet(self) -> str:
        """Concatenated text of every injected local stylesheet."""
        return "\n".join(
            blob.data.decode("utf-8", errors="replace")
            for blob in self.styles.values()
            if not blob.is_remote
        )

    def clear(self) -> None:
        self.styles.clear()
        self.scripts.clear()
        self.injections.clear()


@dataclass
class LoadResult:
    """
    Outcome of a resolve call.

    Attributes:
        code: Resolved entry point (None when not loaded)
        error: Failure for this attempt (None on success)
    """

    code: Any = None
    error: PluginError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.code is not None


def _unwrap_default(value: Any) -> Any:
    """Unwrap one level of default-export indirection."""
    if isinstance(value, Mapping):
        return value["default"] if "default" in value else value
    if hasattr(value, "default"):
        return value.default
    return value


class PluginLoader:
    """
    Resolves installed packages into live entry points.

    Owns the namespace, the resource document and the in-flight registry that
    deduplicates concurrent resolves for the same plugin id.
    """

    def __init__(
        self,
        namespace: Namespace | None = None,
        document: ResourceDocument | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize PluginLoader.

        Args:
            namespace: Entry point registry (a fresh one if omitted)
            document: Resource document (a fresh one if omitted)
            http_client: Client used for URL-referenced files
        """
        self.namespace = namespace if namespace is not None else Namespace()
        self.document = document if document is not None else ResourceDocument()
        self._http_client = http_client
        self._pending: dict[str, asyncio.Future] = {}
        self._modules: dict[str, ModuleType] = {}

    async def resolve(self, package: Package) -> LoadResult:
        """
        Make a package's code and style active and return its entry point.

        Args:
            package: Validated, installed package

        Returns:
            LoadResult with the entry point or the failure
        """
        if not isinstance(package, Package):
            raise TypeError(f"Expected a validated Package, got {type(package).__name__}")

        if not package.enabled:
            return LoadResult()

        manifest = package.manifest
        main = package.main_blob
        if main is None:
            return LoadResult(
                error=AssetMissingError(
                    f"Configuration Error: Entry file '{manifest.main}' not found in resources."
                )
            )

        # Cache hit
        if manifest.global_var in self.namespace:
            return LoadResult(code=_unwrap_default(self.namespace[manifest.global_var]))

        style = package.style_blob
        if style is not None and self.document.ensure_style(package.id, style):
            logger.debug("Injected stylesheet for %s", package.id)

        tag = script_tag(package.id)
        task = self._pending.get(tag)
        if task is None:
            if tag in self.document.scripts:
                # Executed earlier without publishing its entry point
                return self._read_entry(package)

            task = asyncio.ensure_future(self._inject(package, main))
            self._pending[tag] = task
            task.add_done_callback(lambda _: self._pending.pop(tag, None))

        try:
            # Consumers that go away detach; the load itself keeps running
            await asyncio.shield(task)
        except PluginError as e:
            return LoadResult(error=e)

        return self._read_entry(package)

    async def bootstrap(self, packages: Iterable[Package]) -> dict[str, LoadResult]:
        """
        Resolve every enabled package concurrently.

        Args:
            packages: Installed packages

        Returns:
            Dict of plugin id -> LoadResult for the enabled ones
        """
        enabled = [package for package in packages if package.enabled]
        results = await asyncio.gather(*(self.resolve(package) for package in enabled))
        for package, result in zip(enabled, results, strict=True):
            if result.error is not None:
                logger.warning("Plugin %s failed to load: %s", package.id, result.error)
        return {package.id: result for package, result in zip(enabled, results, strict=True)}

    def is_loaded(self, package: Package) -> bool:
        """Check whether a package's entry point is in the namespace."""
        return package.manifest.global_var in self.namespace

    def injection_count(self, plugin_id: str) -> int:
        return self.document.injections[plugin_id]

    def reset(self) -> None:
        """Drop every loaded module, namespace entry and injected resource."""
        for plugin_id in list(self._modules):
            sys.modules.pop(_module_name(plugin_id), None)
        self._modules.clear()
        self._pending.clear()
        self.namespace.clear()
        self.document.clear()

    async def _inject(self, package: Package, blob: ContentBlob) -> None:
        """
        Inject and execute a package's code resource.

        Raises:
            NetworkError: If the code cannot be fetched, decoded or executed
        """
        tag = script_tag(package.id)
        self.document.scripts[tag] = package.id
        self.document.injections[package.id] += 1

        try:
            source = await self._fetch(blob)
            module = self._execute(package, source)
        except NetworkError:
            # Withdraw the resource so a retry can inject again
            self.document.scripts.pop(tag, None)
            raise

        self._modules[package.id] = module

        global_var = package.manifest.global_var
        if global_var not in self.namespace and hasattr(module, global_var):
            self.namespace[global_var] = getattr(module, global_var)
        if global_var in self.namespace:
            logger.info("Bridged plugin module %s as %s", package.id, global_var)

    async def _fetch(self, blob: ContentBlob) -> str:
        """Read code content, downloading URL-referenced files."""
        if blob.is_remote:
            try:
                if self._http_client is not None:
                    response = await self._http_client.get(blob.url)
                else:
                    async with httpx.AsyncClient(timeout=None) as client:
                        response = await client.get(blob.url)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise NetworkError(f"Network Error: Failed to fetch '{blob.url}': {e}") from e
            data = response.content
        else:
            data = blob.data

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise NetworkError(f"Network Error: Entry point is not UTF-8 text: {e}") from e

    def _execute(self, package: Package, source: str) -> ModuleType:
        """
        Execute entry point source as a fresh module.

        Raises:
            NetworkError: If execution fails
        """
        main = package.manifest.main
        module_name = _module_name(package.id)

        try:
            spec = importlib.util.spec_from_loader(module_name, loader=None)
            if spec is None:
                raise ImportError(f"Failed to create module spec for {main}")

            module = importlib.util.module_from_spec(spec)
            module.__file__ = f"<plugin {package.id}>/{main}"
            module.__dict__["__namespace__"] = self.namespace

            # Add to sys.modules before execution
            sys.modules[module_name] = module

            code = compile(source, module.__file__, "exec")
            exec(code, module.__dict__)
            return module

        except Exception as e:
            # Clean up sys.modules on failure
            sys.modules.pop(module_name, None)
            raise NetworkError(
                f"Network Error: Failed to execute entry point '{main}': {e}"
            ) from e

    def _read_entry(self, package: Package) -> LoadResult:
        global_var = package.manifest.global_var
        if global_var not in self.namespace:
            return LoadResult(
                error=PluginRuntimeError(
                    f"Runtime Error: Global '{global_var}' was not initialized "
                    f"(global entry point not populated)."
                )
            )
        return LoadResult(code=_unwrap_default(self.namespace[global_var]))
