"""Gatekeeper CLI.

Provides command-line interface for the permissions service, including:
- Starting the server
- Granting, revoking, checking and listing permissions
"""

import argparse
import asyncio
import sys

from .. import __version__


def _add_permission_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("api_key", help="API key")
    parser.add_argument("module", help="Permission module (e.g. inventory)")
    parser.add_argument("action", help="Permission action (e.g. read)")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="gatekeeper",
        description="Gatekeeper - per-API-key permission service",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve command (default behavior)
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the Gatekeeper service",
        description="Start the HTTP server and the NATS request router",
    )
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: from settings)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: from settings)",
    )

    grant_parser = subparsers.add_parser("grant", help="Grant a permission to an API key")
    _add_permission_args(grant_parser)

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a permission from an API key")
    _add_permission_args(revoke_parser)

    check_parser = subparsers.add_parser("check", help="Check whether an API key holds a permission")
    _add_permission_args(check_parser)

    list_parser = subparsers.add_parser("list", help="List the permissions of an API key")
    list_parser.add_argument("api_key", help="API key")
    list_parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON",
    )

    return parser


def run_serve(args: argparse.Namespace) -> int:
    """Run the server command."""
    from ..main import run as run_server

    run_server(host=args.host, port=args.port)
    return 0


def run_permissions(args: argparse.Namespace) -> int:
    """Run grant/revoke/check/list commands."""
    from .permissions import cmd_change, cmd_check, cmd_list

    if args.command in ("grant", "revoke"):
        return asyncio.run(
            cmd_change(
                args.command,
                args.api_key,
                args.module,
                args.action,
                json_output=args.json_output,
            )
        )
    elif args.command == "check":
        return asyncio.run(
            cmd_check(args.api_key, args.module, args.action, json_output=args.json_output)
        )
    return asyncio.run(cmd_list(args.api_key, json_output=args.json_output))


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Default to serve if no command given
    if args.command is None:
        args.command = "serve"
        args.host = None
        args.port = None

    try:
        if args.command == "serve":
            return run_serve(args)
        elif args.command in ("grant", "revoke", "check", "list"):
            return run_permissions(args)
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
