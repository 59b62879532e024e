#!/usr/bin/env python3
"""
Storefront -- operator commands.

Usage:
  python main.py create-admin --email ops@example.com --name "Ops"
  python main.py create-admin --email root@example.com --name "Root" --role super_admin
  python main.py purge-otps

There is no public route that grants admin roles to a fresh install, so the
first super admin is created here. Accounts created by this command are
marked verified.

Configuration comes from the same environment variables and .env file the
API uses (DATABASE_URL, SECRET_KEY, BCRYPT_ROUNDS, ...).
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import Role
from auth.otp import OtpLedger
from auth.store import UserStore
from core.config import get_settings
from core.db import create_db_engine
from core.errors import AppError


def _read_password() -> Optional[str]:
    password = getpass.getpass("  Password: ")
    if password != getpass.getpass("  Confirm password: "):
        print("  [!] Passwords do not match.")
        return None
    return password


def create_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    password = args.password or _read_password()
    if password is None:
        return 1

    engine = create_db_engine(settings.database_url)
    try:
        users = UserStore(engine, bcrypt_rounds=settings.bcrypt_rounds)
        user = users.create_user(args.email, password, args.name, role=Role(args.role))
        users.mark_verified(user.id)
    except AppError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        engine.dispose()

    print(f"  Created {user.role.value} account {user.email} (id {user.id}).")
    return 0


def purge_otps(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    try:
        removed = OtpLedger(engine, ttl_seconds=settings.otp_ttl_seconds).purge_expired()
    finally:
        engine.dispose()
    print(f"  Removed {removed} expired passcode(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Storefront operator commands.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = commands.add_parser("create-admin", help="Create a verified admin or super admin account.")
    admin.add_argument("--email", required=True, help="Account email address.")
    admin.add_argument("--name", required=True, help="Display name.")
    admin.add_argument(
        "--role",
        choices=[Role.ADMIN.value, Role.SUPER_ADMIN.value],
        default=Role.ADMIN.value,
        help="Role to grant (default: admin).",
    )
    admin.add_argument(
        "--password",
        help="Password. Prompted for when omitted; prefer the prompt over shell history.",
    )
    admin.set_defaults(handler=create_admin)

    purge = commands.add_parser("purge-otps", help="Delete expired one-time passcodes.")
    purge.set_defaults(handler=purge_otps)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
