#!/usr/bin/env python3
"""
authgate -- command-line access to the credential and token services.

Usage:
  python main.py seed
  python main.py token admin
  python main.py token admin --password-stdin < password.txt
  python main.py verify admin eyJhbGciOi...
  python main.py token admin --memory --password-stdin < password.txt

  --memory uses a throwaway in-memory store seeded with the admin principal;
  nothing touches DATABASE_URL.

Environment variables (see core/config.py):
  SECRET_KEY     Signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the credential store (default sqlite:///authgate.db).
  ADMIN_USERNAME / ADMIN_PASSWORD / ADMIN_ROLE   Principal created by `seed`.

Exit codes: 0 success, 1 rejected / invalid, 2 configuration or store failure.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys

from auth.errors import AuthInfrastructureError
from auth.factory import build_gateway, build_hasher, build_seeder
from auth.models import Rejected
from auth.store import CredentialStore, InMemoryCredentialStore, SQLCredentialStore
from core.config import Settings, get_settings

logger = logging.getLogger("authgate.cli")


def _read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    return getpass.getpass("Password: ")


def _cmd_seed(settings: Settings, store: CredentialStore, args: argparse.Namespace) -> int:
    created = build_seeder(settings, store, build_hasher(settings)).ensure_admin_exists()
    if created:
        print(f"  Created admin principal '{settings.admin_username}'.")
    else:
        print(f"  Admin principal '{settings.admin_username}' already exists.")
    return 0


def _cmd_token(settings: Settings, store: CredentialStore, args: argparse.Namespace) -> int:
    gateway = build_gateway(settings, store, build_hasher(settings))
    result = gateway.authenticate_and_issue_token(args.username, _read_password(args.password_stdin))
    if isinstance(result, Rejected):
        print("  [!] Invalid username or password.", file=sys.stderr)
        return 1
    print(result.access_token)
    return 0


def _cmd_verify(settings: Settings, store: CredentialStore, args: argparse.Namespace) -> int:
    gateway = build_gateway(settings, store, build_hasher(settings))
    check = gateway.tokens.check(args.username, args.token)
    if check.valid:
        print(f"valid (expires {check.claims.expires_at.isoformat()})")
        return 0
    print(f"invalid: {check.reason.value}")
    return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Verify credentials and issue or check signed bearer tokens.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # Accepted after any subcommand: `authgate token admin --memory`.
    store_opts = argparse.ArgumentParser(add_help=False)
    store_opts.add_argument(
        "--memory",
        action="store_true",
        help="Use a throwaway in-memory credential store, seeded with the admin principal",
    )

    seed = sub.add_parser("seed", parents=[store_opts], help="Create the default admin principal if it does not exist")
    seed.set_defaults(handler=_cmd_seed)

    token = sub.add_parser("token", parents=[store_opts], help="Authenticate and print a bearer token")
    token.add_argument("username")
    token.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    token.set_defaults(handler=_cmd_token)

    verify = sub.add_parser("verify", parents=[store_opts], help="Check whether a token is valid for a username")
    verify.add_argument("username")
    verify.add_argument("token")
    verify.set_defaults(handler=_cmd_verify)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"  [!] Configuration error: {e}", file=sys.stderr)
        return 2

    store: SQLCredentialStore | InMemoryCredentialStore
    if args.memory:
        store = InMemoryCredentialStore()
        if args.command != "seed":
            build_seeder(settings, store, build_hasher(settings)).ensure_admin_exists()
    else:
        try:
            store = SQLCredentialStore(settings.database_url)
        except AuthInfrastructureError as e:
            print(f"  [!] {e}", file=sys.stderr)
            return 2
    try:
        return args.handler(settings, store, args)
    except AuthInfrastructureError as e:
        logger.debug("Infrastructure failure", exc_info=True)
        print(f"  [!] {e}", file=sys.stderr)
        return 2
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
