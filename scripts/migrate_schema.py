from __future__ import annotations

import argparse

from task_tracker.config.settings import get_settings
from task_tracker.storage.postgres import PostgresTaskStorage


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create the users and tasks tables in a PostgreSQL database."
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="PostgreSQL connection URL (default: TASK_TRACKER_DATABASE_URL).",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    database_url = args.database_url or get_settings().database_url
    if not database_url:
        raise SystemExit("Pass --database-url or set TASK_TRACKER_DATABASE_URL.")
    PostgresTaskStorage(database_url).migrate()
    print("Schema is up to date.")


if __name__ == "__main__":
    main()
