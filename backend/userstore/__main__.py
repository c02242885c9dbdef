"""userstore CLI entry point."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from userstore import __version__
from userstore.config import get_settings
from userstore.repository import User, UsersRepository, UserStoreError
from userstore.repository.client import sanitize_mongodb_url

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from userstore.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


async def _with_repository(action: Callable[[UsersRepository], Awaitable[T]]) -> T:
    settings = get_settings()
    async with UsersRepository(settings.mongodb_url, settings.repository) as repo:
        return await action(repo)


def _run(action: Callable[[UsersRepository], Awaitable[T]]) -> T:
    _init_logfire()
    return asyncio.run(_with_repository(action))


def _print_users(users: list[User]) -> None:
    for user in users:
        print(user.model_dump_json())


def _parse_value(raw: str) -> Any:
    """Interpret a CLI value as JSON when possible, else as a plain string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== userstore Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"Environment: {settings.environment}\n")

        print("MongoDB:")
        print(f"  URL: {sanitize_mongodb_url(settings.mongodb_url)}")
        print(f"  Ping Timeout: {settings.repository.ping_timeout_seconds}s")
        print(f"  Server Selection Timeout: {settings.repository.server_selection_timeout_ms}ms\n")

        print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1


def cmd_ping(args: argparse.Namespace) -> int:
    """Check that the MongoDB server answers."""
    connected = _run(lambda repo: repo.check_connection())
    if connected:
        print("✓ MongoDB connection successful")
        return 0
    print("❌ MongoDB not reachable")
    return 1


def cmd_list(args: argparse.Namespace) -> int:
    """List stored users, optionally one page at a time."""
    try:
        if args.limit is None:
            users = _run(lambda repo: repo.get_all_users())
        else:
            users = _run(lambda repo: repo.get_users(args.skip, args.limit))
    except (UserStoreError, ValueError) as e:
        logger.error(f"Failed to list users: {e}")
        print(f"\n❌ Failed to list users: {e}\n")
        return 1

    _print_users(users)
    return 0


def cmd_find(args: argparse.Namespace) -> int:
    """Find users by a single field value."""
    try:
        users = _run(lambda repo: repo.get_users_by_field(args.field, args.value))
    except UserStoreError as e:
        logger.error(f"Failed to find users: {e}")
        print(f"\n❌ Failed to find users: {e}\n")
        return 1

    _print_users(users)
    return 0


def cmd_insert(args: argparse.Namespace) -> int:
    """Insert a new user."""
    user = User(name=args.name, blog=args.blog, age=args.age, location=args.location)
    try:
        _run(lambda repo: repo.insert_user(user))
    except UserStoreError as e:
        logger.error(f"Failed to insert user: {e}")
        print(f"\n❌ Failed to insert user: {e}\n")
        return 1

    print(user.id)
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    """Set one field on a user."""
    value = _parse_value(args.value)
    try:
        updated = _run(lambda repo: repo.update_user(args.id, args.field, value))
    except UserStoreError as e:
        logger.error(f"Failed to update user: {e}")
        print(f"\n❌ Failed to update user: {e}\n")
        return 1

    if not updated:
        print(f"No user modified for id {args.id}")
        return 1
    print(f"✓ Updated {args.field} on {args.id}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete one user by id."""
    try:
        deleted = _run(lambda repo: repo.delete_user_by_id(args.id))
    except UserStoreError as e:
        logger.error(f"Failed to delete user: {e}")
        print(f"\n❌ Failed to delete user: {e}\n")
        return 1

    if not deleted:
        print(f"No user with id {args.id}")
        return 1
    print(f"✓ Deleted {args.id}")
    return 0


def cmd_purge(args: argparse.Namespace) -> int:
    """Delete every user."""
    if not args.yes:
        print("Refusing to delete all users without --yes")
        return 1

    try:
        count = _run(lambda repo: repo.delete_all_users())
    except UserStoreError as e:
        logger.error(f"Failed to delete users: {e}")
        print(f"\n❌ Failed to delete users: {e}\n")
        return 1

    print(f"✓ Deleted {count} users")
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="userstore: manage user documents in MongoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"userstore {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_ping = subparsers.add_parser(
        "ping",
        help="Check the MongoDB connection",
    )
    parser_ping.set_defaults(func=cmd_ping)

    parser_list = subparsers.add_parser(
        "list",
        help="List users as JSON lines",
    )
    parser_list.add_argument("--skip", type=int, default=0, help="Records to skip")
    parser_list.add_argument("--limit", type=int, default=None, help="Page size")
    parser_list.set_defaults(func=cmd_list)

    parser_find = subparsers.add_parser(
        "find",
        help="Find users whose FIELD equals VALUE",
    )
    parser_find.add_argument("field")
    parser_find.add_argument("value")
    parser_find.set_defaults(func=cmd_find)

    parser_insert = subparsers.add_parser(
        "insert",
        help="Insert a user and print its id",
    )
    parser_insert.add_argument("--name", required=True)
    parser_insert.add_argument("--blog")
    parser_insert.add_argument("--age", type=int, default=0)
    parser_insert.add_argument("--location")
    parser_insert.set_defaults(func=cmd_insert)

    parser_update = subparsers.add_parser(
        "update",
        help="Set FIELD to VALUE (parsed as JSON when valid) on user ID",
    )
    parser_update.add_argument("id")
    parser_update.add_argument("field")
    parser_update.add_argument("value")
    parser_update.set_defaults(func=cmd_update)

    parser_delete = subparsers.add_parser(
        "delete",
        help="Delete the user with ID",
    )
    parser_delete.add_argument("id")
    parser_delete.set_defaults(func=cmd_delete)

    parser_purge = subparsers.add_parser(
        "purge",
        help="Delete all users",
    )
    parser_purge.add_argument(
        "--yes",
        action="store_true",
        help="Confirm deletion of every user",
    )
    parser_purge.set_defaults(func=cmd_purge)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
