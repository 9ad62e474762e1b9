"""Create the PostgreSQL schema and seed the equipment and task type lookups."""

from __future__ import annotations

import argparse

from maintenance_orchestrator.config.settings import configure_logging, get_settings
from maintenance_orchestrator.storage.postgres import PostgresEntityStore


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create maintenance tables in a PostgreSQL database and seed lookup types."
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default="",
        help="PostgreSQL connection URL (default: MAINTENANCE_ORCHESTRATOR_DATABASE_URL).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings)
    database_url = args.database_url or settings.resolved_database_url()
    if not database_url:
        raise SystemExit(
            "Missing database URL. Pass --database-url or set "
            "MAINTENANCE_ORCHESTRATOR_DATABASE_URL."
        )

    store = PostgresEntityStore(database_url)
    store.migrate()
    equipment_types = store.list("equipment_type")
    task_types = store.list("task_type")
    print(
        f"Schema ready: {len(equipment_types)} equipment types, {len(task_types)} task types."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
