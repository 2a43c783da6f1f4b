"""Delivery database management CLI.

Creates and drops the delivery domain's schema on RDBMS-backed providers.
With the default in-memory provider there is nothing to create.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=production python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_databases():
    from delivery.domain import delivery
    from delivery.utils.db import setup_db

    print("Initializing delivery domain...")
    delivery.init()
    print("Creating delivery database schema...")
    touched = setup_db(delivery)
    if touched:
        print(f"  schema ready on: {', '.join(touched)}")
    else:
        print("  no database providers to set up.")

    print("Done.")


def drop_databases():
    from delivery.domain import delivery
    from delivery.utils.db import drop_db

    print("Initializing delivery domain...")
    delivery.init()
    print("Dropping delivery database schema...")
    touched = drop_db(delivery)
    if touched:
        print(f"  schema dropped on: {', '.join(touched)}")
    else:
        print("  no database providers to drop.")

    print("Done.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Delivery tracking database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
