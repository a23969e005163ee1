"""
PassVault - Command-Line Interface

Commands:
- init               Create a new vault
- generate, gen      Generate a password (no vault needed)
- save               Save a password
- get, find          Show a password (or copy it to the clipboard)
- list               List all entries
- delete, del        Delete an entry
- search             Search entries by name, username or URL
- stats              Show vault statistics
- passwd             Change the master password
- version            Show version information

Every command that touches the vault prompts for the master password and
passes it explicitly to the Vault it opens.
"""

import sys
import sqlite3
import getpass
import logging
import argparse
from datetime import datetime
from typing import List, Optional

import pyperclip

from . import __version__
from .config import load_config
from .crypto import CryptoError, AuthenticationFailed
from .generator import GeneratorError, PasswordConfig, generate_password
from .vault import PasswordEntry, Vault, VaultError

APP_NAME = "PassVault"
MIN_MASTER_LENGTH = 8

logger = logging.getLogger("passvault.cli")


# =============================================================================
# Helpers
# =============================================================================

def _fmt_time(ts: Optional[int]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def _open_vault(args) -> Vault:
    vault = Vault(args.db)
    if not vault.exists():
        raise VaultError(f"no vault at {args.db} (run 'passvault init' first)")
    vault.unlock(getpass.getpass("Enter master password: "))
    return vault


def _ask_new_master(prompt: str = "Enter master password: ") -> str:
    pw = getpass.getpass(prompt)
    if len(pw) < MIN_MASTER_LENGTH:
        raise VaultError(f"master password too short (min {MIN_MASTER_LENGTH} chars)")
    if getpass.getpass("Confirm: ") != pw:
        raise VaultError("passwords don't match")
    return pw


def _generator_config(args) -> PasswordConfig:
    return PasswordConfig(
        length=args.length,
        uppercase=not args.no_uppercase,
        lowercase=not args.no_lowercase,
        numbers=not args.no_numbers,
        symbols=not args.no_symbols,
        exclude=args.exclude,
        no_repeating=not args.allow_repeating,
    )


def _print_summary(entry: PasswordEntry) -> None:
    print(f"Name: {entry.name}")
    if entry.username:
        print(f"Username: {entry.username}")
    if entry.url:
        print(f"URL: {entry.url}")


# =============================================================================
# Commands
# =============================================================================

def cmd_init(args) -> int:
    vault = Vault(args.db)
    if vault.exists():
        print(f"Vault exists at: {args.db}")
        return 1
    pw = _ask_new_master()
    vault.initialize(pw)
    vault.lock()
    print(f"✓ Vault created at {args.db}")
    return 0


def cmd_generate(args) -> int:
    pw = generate_password(_generator_config(args))
    print(f"Generated password: {pw}")
    return 0


def cmd_save(args) -> int:
    vault = _open_vault(args)
    try:
        password = args.password
        if args.generate:
            password = generate_password(_generator_config(args))
            print(f"Generated password: {password}")
        elif not password:
            password = getpass.getpass("Enter password: ")

        tags = [t.strip() for t in args.tags.split(",") if t.strip()] if args.tags else []
        entry = PasswordEntry(
            name=args.name,
            username=args.username,
            password=password,
            url=args.url,
            notes=args.notes,
            tags=tags,
        )
        vault.save_entry(entry)
        print(f"Password '{entry.name}' saved successfully!")
    finally:
        vault.lock()
    return 0


def cmd_get(args) -> int:
    vault = _open_vault(args)
    try:
        entry = vault.get_entry(args.name)
    finally:
        vault.lock()

    _print_summary(entry)
    if args.copy:
        pyperclip.copy(entry.password)
        print("✓ Password copied to clipboard!")
    else:
        print(f"Password: {entry.password}")
    if entry.notes:
        print(f"Notes: {entry.notes}")
    if entry.tags:
        print(f"Tags: {', '.join(entry.tags)}")
    print(f"Created: {_fmt_time(entry.created_at)}")
    print(f"Updated: {_fmt_time(entry.updated_at)}")
    return 0


def cmd_list(args) -> int:
    vault = _open_vault(args)
    try:
        entries = vault.list_entries()
    finally:
        vault.lock()

    if not entries:
        print("No passwords found.")
        return 0

    print(f"Found {len(entries)} passwords:\n")
    for entry in entries:
        _print_summary(entry)
        print(f"Updated: {_fmt_time(entry.updated_at)}")
        print("---")
    return 0


def cmd_search(args) -> int:
    vault = _open_vault(args)
    try:
        entries = vault.search(args.query)
    finally:
        vault.lock()

    if not entries:
        print(f"No passwords found matching '{args.query}'.")
        return 0

    print(f"Found {len(entries)} passwords matching '{args.query}':\n")
    for entry in entries:
        _print_summary(entry)
        print("---")
    return 0


def cmd_delete(args) -> int:
    vault = _open_vault(args)
    try:
        if not args.yes:
            answer = input(f"Are you sure you want to delete password '{args.name}'? (y/N): ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Deletion cancelled.")
                return 0
        vault.delete_entry(args.name)
    finally:
        vault.lock()
    print(f"Password '{args.name}' deleted successfully!")
    return 0


def cmd_stats(args) -> int:
    vault = _open_vault(args)
    try:
        stats = vault.stats()
    finally:
        vault.lock()

    print("Database Statistics:")
    print(f"Total passwords: {stats['total_passwords']}")
    print(f"Database size: {stats['database_size']} bytes")
    print(f"Modified: {_fmt_time(stats['modified_at'])}")
    return 0


def cmd_passwd(args) -> int:
    vault = _open_vault(args)
    try:
        new_pw = _ask_new_master("New master password: ")
        count = vault.change_master_password(vault.master_password, new_pw)
    finally:
        vault.lock()
    print(f"✓ Master password changed ({count} entries re-encrypted)")
    return 0


def cmd_version(args) -> int:
    print(f"{APP_NAME} v{__version__}")
    return 0


# =============================================================================
# Parser
# =============================================================================

def _add_generator_options(parser: argparse.ArgumentParser, default_length: int) -> None:
    parser.add_argument("--length", type=int, default=default_length,
                        help=f"password length (default {default_length})")
    parser.add_argument("--no-uppercase", action="store_true", help="no A-Z")
    parser.add_argument("--no-lowercase", action="store_true", help="no a-z")
    parser.add_argument("--no-numbers", action="store_true", help="no 0-9")
    parser.add_argument("--no-symbols", action="store_true", help="no symbols")
    parser.add_argument("--exclude", default="", help="characters to leave out")
    parser.add_argument("--allow-repeating", action="store_true",
                        help="allow identical adjacent characters")


def build_parser() -> argparse.ArgumentParser:
    config = load_config()

    parser = argparse.ArgumentParser(prog="passvault", description=f"{APP_NAME} password manager")
    parser.add_argument("--db", default=str(config.db_path),
                        help=f"vault file (default {config.db_path})")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p = sub.add_parser("init", help="create a new vault")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("generate", aliases=["gen"], help="generate a new password")
    _add_generator_options(p, config.default_length)
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("save", help="save a password")
    p.add_argument("name")
    p.add_argument("--username")
    p.add_argument("--password", help="password (prompted if omitted)")
    p.add_argument("--url")
    p.add_argument("--notes")
    p.add_argument("--tags", help="comma-separated tags")
    p.add_argument("--generate", action="store_true", help="generate the password")
    _add_generator_options(p, config.default_length)
    p.set_defaults(func=cmd_save)

    p = sub.add_parser("get", aliases=["find"], help="retrieve a password")
    p.add_argument("name")
    p.add_argument("--copy", action="store_true", help="copy to clipboard instead of printing")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("list", help="list all passwords")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("delete", aliases=["del"], help="delete a password")
    p.add_argument("name")
    p.add_argument("-y", "--yes", action="store_true", help="don't ask for confirmation")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("search", help="search passwords")
    p.add_argument("query")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("stats", help="show database statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("passwd", help="change the master password")
    p.set_defaults(func=cmd_passwd)

    p = sub.add_parser("version", help="show version information")
    p.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else load_config().log_level_value
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    logger.debug("Running command %s against %s", args.command, args.db)
    try:
        return args.func(args)
    except AuthenticationFailed:
        print("Error: decryption failed (wrong password or corrupted data)", file=sys.stderr)
    except (VaultError, CryptoError, GeneratorError) as e:
        print(f"Error: {e}", file=sys.stderr)
    except pyperclip.PyperclipException as e:
        print(f"Error: clipboard unavailable ({e})", file=sys.stderr)
    except sqlite3.Error as e:
        print(f"Error: database failure ({e})", file=sys.stderr)
    except EOFError:
        print("\nError: input closed", file=sys.stderr)
    except KeyboardInterrupt:
        print("\nExiting...")
        return 130
    return 1


if __name__ == "__main__":
    sys.exit(main())
