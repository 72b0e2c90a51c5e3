"""
Plugbay - Plugin runtime and distribution for host applications.

This is the main package that exports the public API: package ingestion,
the dynamic loader, the lifecycle manager and the disk protocol client.
"""

import logging

__version__ = "0.1.0"

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """
    Configure root logging for CLI and server entry points.

    Args:
        level: Logging level name or number
    """
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger("plugbay").setLevel(level)


# Import after __version__ so submodules can read it
from plugbay.errors import (  # noqa: E402
    AssetMissingError,
    GuardError,
    NetworkError,
    PluginError,
    PluginRuntimeError,
    ServerIOError,
    ValidationError,
)
from plugbay.host import PluginHost  # noqa: E402
from plugbay.plugin.ingest import export_archive, ingest_archive  # noqa: E402
from plugbay.plugin.lifecycle import LifecycleManager  # noqa: E402
from plugbay.plugin.loader import LoadResult, PluginLoader  # noqa: E402
from plugbay.plugin.manifest import Manifest, PluginKind  # noqa: E402
from plugbay.plugin.package import ContentBlob, Package  # noqa: E402

__all__ = [
    "__version__",
    "configure_logging",
    "PluginHost",
    "LifecycleManager",
    "PluginLoader",
    "LoadResult",
    "Manifest",
    "PluginKind",
    "Package",
    "ContentBlob",
    "ingest_archive",
    "export_archive",
    "PluginError",
    "ValidationError",
    "AssetMissingError",
    "NetworkError",
    "PluginRuntimeError",
    "ServerIOError",
    "GuardError",
]
