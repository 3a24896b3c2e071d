#!/usr/bin/env python3
"""
HRIS admin CLI -- account and data maintenance against the configured store.

Usage:
  python main.py create-user alice --role admin --role hr
  python main.py create-user svc-payroll --role payroll --hash '$2b$12$...'
  python main.py hash-password
  python main.py import-employees legacy_export.json

Environment variables:
  HRIS_DATABASE_URL   SQLAlchemy URL of the store to operate on. Without it the
                      CLI runs against a throwaway in-memory store.
  HRIS_JWT_SECRET     Required unless HRIS_DEBUG=true (Settings validates it).
"""

import argparse
import getpass
import json
import sys
from pathlib import Path

from pydantic import ValidationError as SettingsError

from auth.passwords import hash_password
from bootstrap import open_stores
from core.config import get_settings
from core.errors import HRISError
from records.legacy import import_employees


def _prompt_password() -> str:
    """Read a password twice without echo. Returns "" on mismatch."""
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat:   ")
    if first != second:
        print("  [!] Passwords do not match.")
        return ""
    return first


def _load_documents(path: str) -> list | None:
    """Read a JSON array of employee documents from a regular file.

    Resolves symlinks and verifies the path is a regular file before reading.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        print(f"  [!] '{path}' is not a readable file.")
        return None
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"  [!] Could not read '{path}': {e}")
        return None
    if not isinstance(data, list):
        print(f"  [!] '{path}' must contain a JSON array of documents.")
        return None
    return data


def cmd_create_user(args: argparse.Namespace) -> int:
    roles = args.role or []
    stores = open_stores(get_settings())
    try:
        if args.hash:
            stores.credentials.create_user_with_hash(args.username, args.hash, roles)
        else:
            password = _prompt_password()
            if not password:
                return 1
            stores.credentials.create_user(args.username, password, roles)
    finally:
        stores.close()
    print(f"  User '{args.username}' saved with roles: {', '.join(roles) or '(none)'}")
    return 0


def cmd_hash_password(args: argparse.Namespace) -> int:
    password = _prompt_password()
    if not password:
        return 1
    print(hash_password(password))
    return 0


def cmd_import_employees(args: argparse.Namespace) -> int:
    docs = _load_documents(args.file)
    if docs is None:
        return 1
    stores = open_stores(get_settings())
    try:
        result = import_employees(stores.employees, docs)
    finally:
        stores.close()
    print(f"  Imported {result.created}, skipped {result.skipped} existing, {len(result.errors)} rejected.")
    for line in result.errors:
        print(f"  [!] {line}")
    return 0 if not result.errors else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hris",
        description="Administrative commands for the HRIS backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user or replace an existing one")
    create.add_argument("username")
    create.add_argument(
        "--role",
        action="append",
        metavar="ROLE",
        help="Role to grant; repeat for several (e.g. --role admin --role hr)",
    )
    create.add_argument(
        "--hash",
        metavar="HASH",
        help="Store this pre-computed bcrypt hash instead of prompting for a password",
    )
    create.set_defaults(func=cmd_create_user)

    hashp = sub.add_parser("hash-password", help="Print a bcrypt hash for HRIS_ADMIN_PASSWORD_HASH")
    hashp.set_defaults(func=cmd_hash_password)

    imp = sub.add_parser("import-employees", help="Normalize and import a JSON array of legacy employee documents")
    imp.add_argument("file", metavar="FILE.json")
    imp.set_defaults(func=cmd_import_employees)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except HRISError as e:
        print(f"  [!] {e.message}")
        return 1
    except SettingsError as e:
        # Raised by get_settings(), e.g. HRIS_JWT_SECRET unset outside debug mode.
        for err in e.errors():
            print(f"  [!] Configuration: {err['msg']}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
