import argparse
import getpass
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from devdirectory.config import load_settings
from devdirectory.errors import DirectoryError
from devdirectory.security import MIN_PASSWORD_LENGTH, hash_password
from devdirectory.service import build_store
from devdirectory.models import UserDraft
from devdirectory.store import resolve_data_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a developer directory user")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--data",
        dest="data_path",
        default=None,
        help="Path to the JSON document (defaults to DEVDIR_DATA_PATH or data/developers.json)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    settings = load_settings()
    if args.data_path:
        settings = replace(settings, data_path=resolve_data_path(args.data_path))

    try:
        store = build_store(settings)
        user = store.insert_user(UserDraft(name=args.name, email=args.email, password_hash=hash_password(password)))
    except DirectoryError as exc:  # duplicates, etc.
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
