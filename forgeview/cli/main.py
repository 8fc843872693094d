"""Main entry point for the forgeview CLI."""

import argparse
import sys

from .. import __version__
from . import commands


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forgeview",
        description="Browse GitHub, GitLab and Gitea from the terminal",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Write debug output to the log file")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # forgeview config explain|init|path
    config_parser = subparsers.add_parser("config", help="Manage the configuration file")
    config_sub = config_parser.add_subparsers(dest="config_action", help="Config action")
    config_sub.add_parser("explain", help="Print an example config file with documentation")
    init_parser = config_sub.add_parser("init", help="Write the example config file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing config file")
    config_sub.add_parser("path", help="Print the config file path")

    return parser


def main(argv=None):
    """Main entry point for forgeview."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "config":
        if args.config_action is None:
            parser.parse_args(["config", "--help"])
        sys.exit(commands.cmd_config(args.config_action, force=getattr(args, "force", False)))

    sys.exit(commands.cmd_run(debug=args.debug))


if __name__ == "__main__":
    main()
