"""
Plugbay Error Taxonomy.

Every failure the plugin subsystem reports derives from PluginError so that
callers (CLI, host UI) can catch the whole family at their boundary.

Kinds:
- ValidationError: malformed or incomplete manifest/archive
- AssetMissingError: manifest references a file absent from the package
- NetworkError: transport failure fetching code/style or talking to the disk server
- PluginRuntimeError: code executed but never populated its namespace entry
- ServerIOError: disk write/delete failure on the repository side
- GuardError: illegal lifecycle transition
"""


class PluginError(Exception):
    """Base exception for plugin-related errors."""

    pass


class ValidationError(PluginError):
    """Raised when a manifest or archive fails validation."""

    pass


class AssetMissingError(PluginError):
    """Raised when a manifest references a file the package does not carry."""

    pass


class NetworkError(PluginError):
    """Raised when plugin resources or the disk server cannot be reached."""

    pass


class PluginRuntimeError(PluginError):
    """Raised when loaded code never published its global entry point."""

    pass


class ServerIOError(PluginError):
    """Raised when the disk repository fails to write or delete files."""

    pass


class GuardError(PluginError):
    """Raised when a lifecycle transition is not legal in the current state."""

    pass


__all__ = [
    "PluginError",
    "ValidationError",
    "AssetMissingError",
    "NetworkError",
    "PluginRuntimeError",
    "ServerIOError",
    "GuardError",
]
