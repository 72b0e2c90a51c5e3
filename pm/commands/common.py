"""
Shared helpers for pm commands.

Every command builds a PluginHost from the settings file and runs its async
implementation under asyncio.run().
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import plugbay
import plugbay.config
from plugbay.host import PluginHost


def load_settings(args: Any):
    """Point the config API at --config (if given) and return the plugbay section."""
    if getattr(args, "config", None):
        plugbay.config.set_config_file(args.config)
    cfg = plugbay.config.settings()
    plugbay.configure_logging("DEBUG" if args.verbose else cfg.log_level)
    return cfg


def run_with_host(args: Any, action: Callable[[PluginHost, Any], Awaitable[int]]) -> int:
    """
    Run an async command body against a freshly built host.

    Args:
        args: Parsed command-line arguments
        action: Coroutine function taking (host, cfg) and returning an exit code

    Returns:
        Exit code
    """
    cfg = load_settings(args)

    async def _run() -> int:
        host = PluginHost.from_settings(cfg)
        try:
            return await action(host, cfg)
        finally:
            await host.aclose()

    return asyncio.run(_run())


def require_targets(args: Any, usage: str) -> bool:
    if args.targets:
        return True
    print("Error: No targets specified", file=sys.stderr)
    print(f"Usage: {usage}", file=sys.stderr)
    return False


def confirm(prompt: str, args: Any) -> bool:
    """Ask a yes/no question unless --noconfirm was given."""
    if args.noconfirm:
        return True
    answer = input(f"{prompt} [y/N] ").strip().lower()
    return answer in ("y", "yes")
