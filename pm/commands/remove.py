"""
pm remove command (-R).

Uninstall, block (--block) or permanently destroy (--purge) plugins.
"""

import sys
from typing import Any

from plugbay.disk.client import DestroyJob
from plugbay.errors import PluginError
from plugbay.host import PluginHost
from pm.commands.common import confirm, require_targets, run_with_host


def remove_command(args: Any) -> int:
    """
    Execute remove command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not require_targets(args, "pm -R [--block|--purge] <id>"):
        return 1

    return run_with_host(args, lambda host, cfg: remove_async(host, cfg, args))


async def remove_async(host: PluginHost, cfg: Any, args: Any) -> int:
    """Async remove implementation."""
    fail_count = 0

    for plugin_id in args.targets:
        try:
            if args.purge:
                if not confirm(f"Permanently destroy {plugin_id}? This cannot be undone.", args):
                    print(f"Skipped {plugin_id}")
                    continue
                await purge_plugin(host, cfg, plugin_id)
            elif args.block:
                host.lifecycle.soft_block(plugin_id)
                print(f"Blocked {plugin_id}")
            else:
                host.lifecycle.uninstall(plugin_id)
                print(f"Uninstalled {plugin_id}")
        except PluginError as e:
            print(f"Failed to remove {plugin_id}: {e}", file=sys.stderr)
            fail_count += 1

    return 0 if fail_count == 0 else 1


def _report(job: DestroyJob) -> None:
    print(f"  {job.plugin_id}: {job.state.value}")


async def purge_plugin(host: PluginHost, cfg: Any, plugin_id: str) -> DestroyJob:
    """
    Block (if needed) and destroy a plugin, following the server halt.

    Args:
        host: Plugin host
        cfg: plugbay settings section
        plugin_id: Plugin id

    Returns:
        Finished DestroyJob
    """
    host.lifecycle.soft_block(plugin_id)
    job = await host.destroy(plugin_id)
    _report(job)
    job.subscribe(_report)

    await job.wait_stopped(poll_interval=cfg.poll_interval, max_polls=cfg.max_polls)

    if job.confirmed:
        print(f"Destroyed {plugin_id}; restart the disk server to resume")
    else:
        print(f"Destroy of {plugin_id} sent but not acknowledged; it probably succeeded")
    return job
