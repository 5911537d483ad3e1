#!/usr/bin/env python3
"""
narrowssh - Allowlisted SSH Commands
====================================

Manage allowlisted SSH commands for one or more users.

Usage:
    narrowssh refresh                 # Affect the running user
    narrowssh --user alice refresh    # Affect one user by name
    narrowssh --uid 1000 uninstall    # Affect one user by UID
    narrowssh --all-users refresh     # Affect every user enabled in control
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence

# Ensure project root is in path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console

from core.control import ControlManager
from core.errors import ErrorHandler, UsageError
from infra.logging import configure_logging, get_logger
from infra.settings import DEFAULT_SETTINGS_FILE, MAIN_CONTROL_FILE, RuntimeSettings
from infra.users import User, UserMap

console = Console()
error_console = Console(stderr=True, highlight=False)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="narrowssh",
        description="Manage allowlisted SSH commands for one or more users."
    )

    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        "--user", "-u",
        help="Affect user with given username instead of running user"
    )
    selection.add_argument(
        "--uid",
        type=int,
        help="Affect user with given user ID instead of running user"
    )
    selection.add_argument(
        "--all-users", "-a",
        action="store_true",
        help="Affect all users according to the control file"
    )

    parser.add_argument(
        "--settings",
        default=DEFAULT_SETTINGS_FILE,
        help="Path to runtime settings file (YAML)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides settings file)"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser(
        "refresh",
        help="Install or update allowlisted SSH commands for one or all users"
    )
    commands.add_parser(
        "uninstall",
        help="Purge SSH allowlist setup from one or all users"
    )

    return parser


def resolve_users(
    args: argparse.Namespace,
    users: UserMap,
    control_file: str = MAIN_CONTROL_FILE,
    resolver=None,
) -> List[User]:
    """
    Return all users that should be affected.

    If ``--all-users`` is set, the control file is read, parsed and
    discarded.
    """
    if args.user is not None:
        user = users.user_by_username(args.user)
        if user is None:
            raise UsageError(f"No such user exists: {args.user}")
        return [user]

    if args.uid is not None:
        user = users.user_by_uid(args.uid)
        if user is None:
            raise UsageError(f"No such user exists: UID {args.uid}")
        return [user]

    if args.all_users:
        control = ControlManager.load(users, control_file, resolver=resolver)

        result = [u for u in users.all_users() if control.get(u.uid).enabled]
        if not result:
            raise UsageError(f"All users are disabled in {control_file}")

        return sorted(result, key=lambda u: u.uid)

    current = users.current_user()
    if current is None:
        raise UsageError(f"Current user (UID {users.current_uid()}) does not exist")
    return [current]


def run(args: argparse.Namespace, users: UserMap) -> None:
    """Run the selected command."""
    logger = get_logger("main")

    affected = resolve_users(args, users)
    names = ", ".join(f"{u.name} ({u.uid})" for u in affected)
    console.print(f"Affecting users {names}", markup=False, soft_wrap=True)

    if args.command == "refresh":
        # TODO: write the allowlist into each user's authorized_keys
        logger.info(f"Refresh requested for {len(affected)} user(s)")
        console.print("Refreshing")
    elif args.command == "uninstall":
        logger.info(f"Uninstall requested for {len(affected)} user(s)")
        console.print("Uninstalling")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    handler = ErrorHandler()
    configure_logging()

    try:
        settings = RuntimeSettings.from_file(args.settings)
        if args.log_level:
            settings.log_level = args.log_level
        configure_logging(settings.level, log_file=settings.log_file, force=True)

        run(args, UserMap.from_system())
        return 0

    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except Exception as e:
        for line in handler.handle(e):
            error_console.print(line, markup=False, soft_wrap=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
