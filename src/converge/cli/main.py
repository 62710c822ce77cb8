from __future__ import annotations

import argparse
import sys
from typing import Sequence

from converge import __version__
from converge.config.settings import get_settings
from converge.logging import configure_logging


def _add_scope_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--scope", dest="scope_name", help="Scope name (default: CONVERGE_DEFAULT_SCOPE)")
    parser.add_argument("--state-dir", help="Directory holding scope state (default: CONVERGE_STATE_DIR)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="converge", description="Converge CLI")
    parser.add_argument("--version", action="version", version=f"converge {__version__}")
    parser.add_argument("--log-level", help="Log level (default: CONVERGE_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command")

    user_parser = subparsers.add_parser("user", help="Example Platform users")
    user_subparsers = user_parser.add_subparsers(dest="user_command")

    apply_parser = user_subparsers.add_parser("apply", help="Create or update a user")
    apply_parser.add_argument("logical_id", help="Logical id of the user within the scope")
    apply_parser.add_argument("--org-id", required=True, help="Organization id")
    apply_parser.add_argument("--first-name", required=True)
    apply_parser.add_argument("--last-name", required=True)
    apply_parser.add_argument("--fun-fact")
    apply_parser.add_argument("--api-url", help="Example Platform API URL (overrides API_URL)")
    apply_parser.add_argument("--json", dest="output_format", action="store_const", const="json", default="table")
    _add_scope_args(apply_parser)

    scope_parser = subparsers.add_parser("scope", help="Inspect and destroy scopes")
    scope_subparsers = scope_parser.add_subparsers(dest="scope_command")

    show_parser = scope_subparsers.add_parser("show", help="List resources in a scope")
    show_parser.add_argument("--json", dest="output_format", action="store_const", const="json", default="table")
    _add_scope_args(show_parser)

    destroy_parser = scope_subparsers.add_parser("destroy", help="Destroy every resource in a scope")
    destroy_parser.add_argument("--api-url", help="Example Platform API URL (overrides API_URL)")
    _add_scope_args(destroy_parser)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level or get_settings().log_level, json=not sys.stderr.isatty())

    if args.command == "user" and args.user_command == "apply":
        from converge.cli.user import user_apply_command

        sys.exit(user_apply_command(
            args.logical_id,
            org_id=args.org_id,
            first_name=args.first_name,
            last_name=args.last_name,
            fun_fact=args.fun_fact,
            scope_name=args.scope_name,
            state_dir=args.state_dir,
            api_url=args.api_url,
            output_format=args.output_format,
        ))

    if args.command == "scope" and args.scope_command == "show":
        from converge.cli.scope import scope_show_command

        sys.exit(scope_show_command(
            scope_name=args.scope_name,
            state_dir=args.state_dir,
            output_format=args.output_format,
        ))

    if args.command == "scope" and args.scope_command == "destroy":
        from converge.cli.scope import scope_destroy_command

        sys.exit(scope_destroy_command(
            scope_name=args.scope_name,
            state_dir=args.state_dir,
            api_url=args.api_url,
        ))

    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":  # pragma: no cover
    main()
