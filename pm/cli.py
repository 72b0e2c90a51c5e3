"""
pm CLI - Plugbay Package Manager.

Pacman-style interface for managing host plugins.

Usage:
    pm -S <archive.zip|id>       Install plugin from an archive or the repository
    pm -R <id>                   Uninstall plugin (must be disabled)
    pm -R --block <id>           Hide plugin from the repository view
    pm -R --purge <id>           Permanently destroy plugin files on disk
    pm -Q                        List installed plugins
    pm -Qi <id>                  Show plugin info
    pm -Ql <id>                  List plugin files
    pm -Ss [query]               Search repository
    pm -T <id>                   Enable/disable plugin
    pm -A <id>                   Restore blocked plugin
    pm -E <id> [-o file]         Export plugin as a zip archive
    pm --reinstall-defaults      Re-add removed built-in plugins
    pm --init-config             Write a settings file with default values
"""

import argparse
import sys

from plugbay.config import ConfigError
from plugbay.errors import PluginError


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="Plugbay Package Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugin")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove plugin")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("-T", "--toggle", action="store_true", help="Enable/disable plugin")
    ops.add_argument("-A", "--restore", action="store_true", help="Restore blocked plugin")
    ops.add_argument("-E", "--export", action="store_true", help="Export plugin archive")
    ops.add_argument(
        "--reinstall-defaults", action="store_true", help="Re-add removed built-in plugins"
    )
    ops.add_argument(
        "--init-config", action="store_true", help="Write default settings file"
    )
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Query sub-flags
    parser.add_argument("-l", "--list", action="store_true", help="List files (-Ql)")
    parser.add_argument("-s", "--search", action="store_true", help="Search (-Ss)")
    parser.add_argument("-i", "--info", action="store_true", help="Show info (-Qi)")

    # Remove modifiers
    parser.add_argument("--block", action="store_true", help="Hide from repository on -R")
    parser.add_argument("--purge", action="store_true", help="Destroy files on disk on -R")

    # Common options
    parser.add_argument("-o", "--output", help="Output file for -E")
    parser.add_argument("--config", help="Settings file (default: config/plugbay.toml)")
    parser.add_argument(
        "--noconfirm", action="store_true", help="Skip confirmation prompts"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin ids, archives or queries")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - Plugbay Package Manager

Usage:
    pm -S <archive.zip|id>       Install plugin from an archive or the repository
    pm -R <id>                   Uninstall plugin (must be disabled)
    pm -R --block <id>           Hide plugin from the repository view
    pm -R --purge <id>           Permanently destroy plugin files on disk
    pm -Q                        List installed plugins
    pm -Qi <id>                  Show plugin info
    pm -Ql <id>                  List plugin files
    pm -Ss [query]               Search repository
    pm -T <id>                   Enable/disable plugin
    pm -A <id>                   Restore blocked plugin
    pm -E <id> [-o file]         Export plugin as a zip archive
    pm --reinstall-defaults      Re-add removed built-in plugins
    pm --init-config             Write a settings file with default values

Options:
    --config <file>              Settings file
    --noconfirm                  Skip confirmation prompts
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        # Search is its own operation: -Ss, or -s on its own
        if args.search and not (args.remove or args.query or args.toggle):
            from pm.commands.query import search_command

            return search_command(args)

        if args.help or not (
            args.sync
            or args.remove
            or args.query
            or args.toggle
            or args.restore
            or args.export
            or args.reinstall_defaults
            or args.init_config
        ):
            print_help()
            return 0

        # Route to appropriate command
        if args.sync:
            # -S: Install
            from pm.commands.install import install_command

            return install_command(args)

        elif args.remove:
            # -R: Remove
            from pm.commands.remove import remove_command

            return remove_command(args)

        elif args.query:
            # -Q: Query
            from pm.commands.query import query_command

            return query_command(args)

        elif args.toggle:
            from pm.commands.manage import toggle_command

            return toggle_command(args)

        elif args.restore:
            from pm.commands.manage import restore_command

            return restore_command(args)

        elif args.export:
            from pm.commands.manage import export_command

            return export_command(args)

        elif args.reinstall_defaults:
            from pm.commands.manage import reinstall_defaults_command

            return reinstall_defaults_command(args)

        elif args.init_config:
            from pm.commands.manage import init_config_command

            return init_config_command(args)

    except (PMError, PluginError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
