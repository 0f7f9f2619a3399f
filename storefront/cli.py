"""Operator commands.

    python -m storefront.cli create-admin --email admin@example.com --password ...
    python -m storefront.cli approve --email someone@example.com

``create-admin`` bootstraps the first approved admin, since admin
self-registration always lands in the approval queue.
"""

import argparse
import asyncio
import logging
import sys

from .auth.passwords import PasswordHasher
from .config import ConfigError, get_settings
from .core.models import Role, check_password_bytes
from .db.repository import Repository

logger = logging.getLogger(__name__)


async def create_admin(repository: Repository, hasher: PasswordHasher, email: str, password: str, name: str) -> int:
    """Create an approved admin, or promote and re-key an existing account."""
    password_hash = await hasher.hash(password)
    existing = await repository.get_user_by_email(email)
    if existing:
        await repository.update_password_hash(existing.id, password_hash)
        await repository.set_user_role(existing.id, Role.ADMIN)
        await repository.set_user_approved(existing.id, True)
        logger.info(f"Promoted existing user {existing.id} to approved admin")
        return existing.id

    user = await repository.create_user(
        email=email, password_hash=password_hash, name=name, role=Role.ADMIN, approved=True
    )
    logger.info(f"Created admin user {user.id}")
    return user.id


async def approve(repository: Repository, email: str) -> bool:
    user = await repository.get_user_by_email(email)
    if not user:
        logger.error(f"No user with email {email}")
        return False
    await repository.set_user_approved(user.id, True)
    logger.info(f"Approved user {user.id}")
    return True


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    repository = Repository(settings.database_path)
    await repository.connect()
    try:
        if args.command == "create-admin":
            hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
            await create_admin(repository, hasher, args.email, args.password, args.name)
            return 0
        return 0 if await approve(repository, args.email) else 1
    finally:
        await repository.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Storefront operator commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create-admin", help="Create or promote an approved admin")
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--name", default="Admin User")

    approve_cmd = subparsers.add_parser("approve", help="Approve a pending account")
    approve_cmd.add_argument("--email", required=True)

    args = parser.parse_args(argv)
    if args.command == "create-admin":
        try:
            check_password_bytes(args.password)
        except ValueError as e:
            parser.error(str(e))
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    try:
        return asyncio.run(_run(args))
    except ConfigError as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
