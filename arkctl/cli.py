"""Command-line entry point: serve the HTTP surface or run one command."""

import argparse
import json
import sys

from arkctl.services import command_surface


def build_parser():
    parser = argparse.ArgumentParser(
        prog="arkctl",
        description="Game server lifecycle, backup, and rollback control",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve                          # Start the backup watcher and HTTP surface
  %(prog)s run status                     # Report server state
  %(prog)s run restart force              # Restart even with players online
  %(prog)s run rollback 2024-01-01_(12-00-00) force
        """,
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to the KEY=VALUE config file (default: $ARKCTL_CONFIG or ./arkctl.env)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("serve", help="Run the periodic backup watcher and the HTTP server")

    run_parser = subparsers.add_parser("run", help="Execute one control command and print the outcome")
    run_parser.add_argument("name", help="Command name or alias (see 'arkctl commands')")
    run_parser.add_argument("args", nargs="*", help="Command arguments, e.g. 'force'")
    run_parser.add_argument("--json", action="store_true", help="Print the full outcome payload as JSON")

    subparsers.add_parser("commands", help="List available commands")
    return parser


def _print_commands():
    for command in command_surface.list_commands():
        aliases = f" (aliases: {', '.join(command['aliases'])})" if command["aliases"] else ""
        print(f"{command['usage']:<32} {command['description']}{aliases}")


def main(argv=None):
    """Parse arguments and run the selected subcommand; return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "commands":
        _print_commands()
        return 0

    from arkctl.main import build_runtime

    state = build_runtime(args.config)

    if args.command == "serve":
        from arkctl.application_factory import create_app
        from arkctl.services.app_lifecycle import build_run_server

        app = create_app(state)
        build_run_server(app, state)()
        return 0

    outcome = command_surface.dispatch(state, args.name, " ".join(args.args))
    if args.json:
        print(json.dumps(outcome, indent=2, default=str))
    else:
        print(outcome.get("message", ""))
    return 0 if outcome.get("ok") else 1


if __name__ == "__main__":
    sys.exit(main())
