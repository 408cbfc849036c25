"""Command-line front end for the secure store.

    shadowkeep get openai_api_key --copy
    echo -n "$TOKEN" | shadowkeep set github_token
    shadowkeep migrate

Values are printed on stdout and nothing else is, so the output can be piped.
Diagnostics go to stderr.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import List, Optional

from shadowkeep.core.config import StoreConfig, build_store, load_config, PROVIDERS
from shadowkeep.core.exceptions import ShadowKeepError
from shadowkeep.core.secure_store import SecureStore
from shadowkeep.security.keystore import assess_keyring_backend
from .clipboard import copy_to_clipboard
from .logging_config import configure_logging


logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowkeep",
        description="Store small secrets encrypted at rest.",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Application data directory (default: platform user data dir)",
    )
    parser.add_argument(
        "--provider",
        choices=PROVIDERS,
        default=None,
        help="Key provider (default: machine)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_get = sub.add_parser("get", help="Print a stored value")
    p_get.add_argument("key")
    p_get.add_argument("--copy", action="store_true", help="Copy to clipboard instead of printing")

    p_set = sub.add_parser("set", help="Store a value")
    p_set.add_argument("key")
    p_set.add_argument("value", nargs="?", default=None, help="Value (default: read from stdin or prompt)")

    p_delete = sub.add_parser("delete", help="Remove a stored value")
    p_delete.add_argument("key")

    sub.add_parser("list", help="List stored keys")
    sub.add_parser("migrate", help="Re-encrypt legacy records under the current key")
    sub.add_parser("doctor", help="Show provider, keyring backend and paths")
    return parser


def _read_value(key: str) -> str:
    if sys.stdin.isatty():
        return getpass.getpass(f"Value for {key}: ")
    return sys.stdin.read().rstrip("\n")


def _cmd_get(store: SecureStore, args) -> int:
    value = store.get(args.key)
    if args.copy:
        copy_to_clipboard(value)
        print(f"Copied {args.key} to clipboard", file=sys.stderr)
    else:
        print(value)
    return 0


def _cmd_set(store: SecureStore, args) -> int:
    value = args.value if args.value is not None else _read_value(args.key)
    store.set(args.key, value)
    return 0


def _cmd_delete(store: SecureStore, args) -> int:
    store.delete(args.key)
    return 0


def _cmd_list(store: SecureStore, args) -> int:
    for name in store.list_keys():
        print(name)
    return 0


def _cmd_migrate(store: SecureStore, args) -> int:
    results = store.migrate_all()
    failed = 0
    for name, result in results.items():
        if result.error:
            failed += 1
            print(f"{name}: failed ({result.error})", file=sys.stderr)
        elif result.upgraded:
            print(f"{name}: migrated from {result.source}", file=sys.stderr)
    print(f"{len(results)} record(s) checked, {failed} failed", file=sys.stderr)
    return 1 if failed else 0


def _cmd_doctor(store: SecureStore, args, config: StoreConfig) -> int:
    secure, msg = assess_keyring_backend()
    print(f"data dir:        {store.data_dir}")
    print(f"secure dir:      {store.secure_dir}")
    print(f"key provider:    {config.provider}")
    print(f"legacy keyring:  {'on' if store.legacy_providers else 'off'}")
    print(f"keyring backend: {'ok' if secure else 'insecure'} ({msg})")
    try:
        store.provider.get_key()
    except ShadowKeepError as e:
        print(f"key access:      FAILED ({e})")
        return 1
    print("key access:      ok")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    try:
        config = load_config(data_dir=args.data_dir, provider=args.provider)
    except ShadowKeepError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    configure_logging("DEBUG" if args.verbose else config.log_level)

    store = build_store(config)
    handlers = {
        "get": _cmd_get,
        "set": _cmd_set,
        "delete": _cmd_delete,
        "list": _cmd_list,
        "migrate": _cmd_migrate,
    }
    try:
        if args.command == "doctor":
            return _cmd_doctor(store, args, config)
        return handlers[args.command](store, args)
    except ShadowKeepError as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
