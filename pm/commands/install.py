"""
pm install command (-S).

Install plugins from zip archives or from the repository.
"""

import sys
from pathlib import Path
from typing import Any

from plugbay.errors import PluginError
from plugbay.host import PluginHost
from pm.commands.common import require_targets, run_with_host


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not require_targets(args, "pm -S <archive.zip|id>"):
        return 1

    return run_with_host(args, lambda host, cfg: install_async(host, args))


async def install_async(host: PluginHost, args: Any) -> int:
    """Async install implementation."""
    success_count = 0
    fail_count = 0

    for target in args.targets:
        try:
            package = await install_plugin(host, target)
            print(
                f"Installed {package.manifest.name} ({package.id}) "
                f"v{package.manifest.version}"
            )
            success_count += 1
        except PluginError as e:
            print(f"Failed to install {target}: {e}", file=sys.stderr)
            fail_count += 1

    # Summary
    if args.verbose:
        print(f"\nInstalled: {success_count}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1


def is_archive(target: str) -> bool:
    """
    Decide whether a target names an archive file or a repository id.

    Args:
        target: Command-line target

    Returns:
        True for existing files and *.zip paths
    """
    return target.lower().endswith(".zip") or Path(target).is_file()


async def install_plugin(host: PluginHost, target: str):
    """
    Install a single plugin.

    Args:
        host: Plugin host
        target: Archive path or repository id

    Returns:
        Installed package
    """
    if is_archive(target):
        try:
            data = Path(target).read_bytes()
        except OSError as e:
            raise PluginError(f"Cannot read archive {target}: {e}") from e
        return await host.install_archive(data)

    return await host.install(target)
