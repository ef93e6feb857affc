"""Apply the SQL schema to the configured PostgreSQL database."""

from __future__ import annotations

import logging
from pathlib import Path

from gmtracker.backend.config import configure_logging, load_settings


logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


def main() -> None:
    settings = load_settings()
    configure_logging(settings)
    if not settings.database_url:
        raise RuntimeError("GMTRACKER_DATABASE_URL is required for migration")

    import psycopg

    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")

    with psycopg.connect(settings.database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
        conn.commit()
    logger.info("applied schema %s", SCHEMA_PATH.name)


if __name__ == "__main__":
    main()
