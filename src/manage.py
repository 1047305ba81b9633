"""Orders database management CLI.

Creates and drops the SQL schema of the orders domain for whichever
providers the active PROTEAN_ENV configures.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=production python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

import structlog

logger = structlog.get_logger(__name__)


def setup_database():
    from orders.domain import orders
    from orders.utils.db import setup_db

    orders.init()
    setup_db(orders)
    logger.info("schema_created", domain=orders.name)


def drop_database():
    from orders.domain import orders
    from orders.utils.db import drop_db

    orders.init()
    drop_db(orders)
    logger.info("schema_dropped", domain=orders.name)


def main():
    from orders.utils.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Orders database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
