from __future__ import annotations
import argparse
import logging
import sys

from sqlalchemy import inspect

import config
from errors import StoreError
from migrator import Migrator
from store import Store

logger = logging.getLogger("migrate")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Apply pending SQL migrations")
    parser.add_argument("--database-url", default=config.DATABASE_URL)
    parser.add_argument("--migrations", default=config.MIGRATIONS_PATH)
    args = parser.parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")

    logger.info("Starting database migration...")
    try:
        store = Store.open(args.database_url, args.migrations)
    except StoreError as exc:
        logger.error("Migration failed: %s", exc)
        return 1
    try:
        tables = sorted(t for t in inspect(store.db.engine).get_table_names() if t != "migrations")
        logger.info("Database tables:")
        for t in tables: logger.info("  - %s", t)
        logger.info("Applied migrations:")
        for name, applied_at in Migrator(store.db.engine, args.migrations).applied():
            logger.info("  - %s (%s)", name, applied_at)
    finally:
        store.close()
    logger.info("Database migration completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
