"""
pm query commands (-Q, -Qi, -Ql, -Ss).

Inspect installed plugins and search the repository.
"""

import sys
from typing import Any

from plugbay.host import PluginHost
from plugbay.plugin.package import Package
from pm.commands.common import run_with_host


def format_line(package: Package, status: str) -> str:
    manifest = package.manifest
    return f"{package.id} {manifest.version} [{status}] ({manifest.kind.value}) - {manifest.name}"


def format_info(package: Package) -> str:
    manifest = package.manifest
    lines = [
        f"Id          : {package.id}",
        f"Name        : {manifest.name}",
        f"Version     : {manifest.version}",
        f"Description : {manifest.description or 'None'}",
        f"Type        : {manifest.kind.value}",
        f"Entry point : {manifest.main}",
        f"Style       : {manifest.style or 'None'}",
        f"Global      : {manifest.global_var}",
        f"Enabled     : {'Yes' if package.enabled else 'No'}",
    ]
    return "\n".join(lines)


def query_command(args: Any) -> int:
    """Execute query command (-Q, -Qi, -Ql)."""
    return run_with_host(args, lambda host, cfg: query_async(host, args))


async def query_async(host: PluginHost, args: Any) -> int:
    """Async query implementation."""
    if not args.targets:
        installed = host.lifecycle.installed()
        if not installed:
            print("No plugins installed.")
        for package in installed:
            print(format_line(package, "enabled" if package.enabled else "disabled"))
        return 0

    status = 0
    for plugin_id in args.targets:
        package = host.lifecycle.get(plugin_id)
        if package is None:
            print(f"error: plugin '{plugin_id}' was not found", file=sys.stderr)
            status = 1
            continue

        if args.list:
            for filename, blob in sorted(package.files.items()):
                size = "remote" if blob.is_remote else f"{len(blob.data)} bytes"
                print(f"{plugin_id} {filename} ({blob.mime}, {size})")
        else:
            print(format_info(package))

    return status


def search_command(args: Any) -> int:
    """Execute search command (-Ss)."""
    return run_with_host(args, lambda host, cfg: search_async(host, args))


async def search_async(host: PluginHost, args: Any) -> int:
    """Async search implementation."""
    query = " ".join(args.targets).lower()
    entries = await host.repository()

    matches = [
        entry
        for entry in entries
        if not query
        or query in entry.id.lower()
        or query in entry.manifest.name.lower()
        or query in entry.manifest.description.lower()
    ]

    for entry in matches:
        if host.lifecycle.is_installed(entry.id):
            status = "installed"
        elif host.lifecycle.is_blocked(entry.id):
            status = "blocked"
        else:
            status = "available"
        print(format_line(entry, status))

    return 0 if matches else 1
