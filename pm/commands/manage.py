"""
pm management commands (-T, -A, -E, --reinstall-defaults, --init-config).

Toggle, restore from the blocked set, export plugins, bring back removed
built-ins and write a fresh settings file.
"""

import sys
from pathlib import Path
from typing import Any

import plugbay.config
from plugbay.disk.repository import sanitize_id
from plugbay.errors import PluginError
from plugbay.host import PluginHost
from pm.commands.common import confirm, require_targets, run_with_host


def toggle_command(args: Any) -> int:
    """Execute toggle command (-T)."""
    if not require_targets(args, "pm -T <id>"):
        return 1
    return run_with_host(args, lambda host, cfg: toggle_async(host, args))


async def toggle_async(host: PluginHost, args: Any) -> int:
    status = 0
    for plugin_id in args.targets:
        try:
            package = host.lifecycle.toggle(plugin_id)
        except PluginError as e:
            print(f"Failed to toggle {plugin_id}: {e}", file=sys.stderr)
            status = 1
            continue
        print(f"{plugin_id}: {'enabled' if package.enabled else 'disabled'}")
    return status


def restore_command(args: Any) -> int:
    """Execute restore command (-A)."""
    if not require_targets(args, "pm -A <id>"):
        return 1
    return run_with_host(args, lambda host, cfg: restore_async(host, args))


async def restore_async(host: PluginHost, args: Any) -> int:
    for plugin_id in args.targets:
        host.lifecycle.restore(plugin_id)
        print(f"Restored {plugin_id}")
    return 0


def export_command(args: Any) -> int:
    """Execute export command (-E)."""
    if not require_targets(args, "pm -E <id> [-o file]"):
        return 1
    if args.output and len(args.targets) > 1:
        print("Error: -o can only be used with a single target", file=sys.stderr)
        return 1
    return run_with_host(args, lambda host, cfg: export_async(host, args))


async def export_async(host: PluginHost, args: Any) -> int:
    status = 0
    for plugin_id in args.targets:
        target = Path(args.output or f"{sanitize_id(plugin_id)}.zip")
        try:
            target.write_bytes(host.export(plugin_id))
        except (PluginError, OSError) as e:
            print(f"Failed to export {plugin_id}: {e}", file=sys.stderr)
            status = 1
            continue
        print(f"Exported {plugin_id} to {target}")
    return status


def reinstall_defaults_command(args: Any) -> int:
    """Execute reinstall-defaults command (--reinstall-defaults)."""
    return run_with_host(args, lambda host, cfg: reinstall_defaults_async(host))


async def reinstall_defaults_async(host: PluginHost) -> int:
    added = host.reinstall_defaults()
    if added:
        print(f"Restored {added} default plugin(s).")
    else:
        print("All default plugins are already installed.")
    return 0


def init_config_command(args: Any) -> int:
    """Execute init-config command (--init-config)."""
    if args.config:
        plugbay.config.set_config_file(args.config)
    target = plugbay.config.config_file()
    if target.exists() and not confirm(f"Overwrite {target}?", args):
        print("Aborted")
        return 1
    try:
        written = plugbay.config.write_defaults()
    except OSError as e:
        print(f"Failed to write {target}: {e}", file=sys.stderr)
        return 1
    print(f"Wrote default settings to {written}")
    return 0
