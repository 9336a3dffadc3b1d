"""Command-line interface for the developer directory service."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from devdirectory.config import Settings, load_settings
from devdirectory.service import build_store
from devdirectory.store import DeveloperStore

logger = logging.getLogger("devdirectory.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Developer directory utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Load or seed the developer store")
    subparsers.add_parser("list-users", help="List registered user accounts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP directory service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_store(settings: Settings) -> DeveloperStore:
    store = build_store(settings)
    logger.info("Developer store ready at %s", settings.data_path)
    return store


def _serve(*, settings: Settings, store: DeveloperStore, host: str, port: int) -> None:
    from devdirectory.service import create_app
    import uvicorn

    logger.info("Starting developer directory on http://%s:%s", host, port)
    app = create_app(settings=settings, store=store)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(store: DeveloperStore) -> None:
    users = store.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<36}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 110)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<36}  {user.name:<24}  {user.email:<32}  {created}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings()
    store = _initialise_store(settings)

    if args.command == "serve":
        _serve(settings=settings, store=store, host=args.host, port=args.port)
    elif args.command == "list-users":
        _list_users(store)
    elif args.command == "init-db":
        print(f"Developer store initialised with {len(store.list_developers())} developer(s).")


if __name__ == "__main__":
    main()
