"""Seed the local database with an administrator for development."""

from __future__ import annotations

import argparse

from procdeck.config import Settings
from procdeck.models.user import User
from procdeck.services.sqlite_repo import LocalSQLiteUserRepository


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create an initial admin user if none exist.")
    parser.add_argument("--username", default="admin")
    args = parser.parse_args(argv)

    settings = Settings.load()
    repository = LocalSQLiteUserRepository(db_path=settings.db_path)

    seed_users = [User(username=args.username, roles=["admin"], claims=["process:manage", "project:publish"])]

    try:
        created = repository.seed_if_empty(seed_users)
    finally:
        repository.close()

    if created:
        print(f"Created users: {', '.join(created)}")
    else:
        print("Table 'users' already contained rows; nothing created.")


if __name__ == "__main__":
    main()
