#!/usr/bin/env python
# manage.py
import argparse
import logging
import sys

from checkin.core.config import settings
from checkin.core.db import get_engine, init_db
from checkin.core.exceptions import EmptyBaseNameError
from checkin.services.config_service import SiteConfigStore
from checkin.services.ordering_service import OrderingEngine
from checkin.services.question_service import SITE_QUESTION_SCOPE
from checkin.services.schema_service import SchemaColumnManager
from checkin.utils.naming import sanitize_title_to_base_name, format_base_name_for_display

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def show_columns(engine):
    """Print the answer columns on the check-in table"""
    manager = SchemaColumnManager(engine, settings)
    columns = manager.list_question_columns()

    print(f"\n=== Question columns on '{manager.table_name}' ===")
    if not columns:
        print("  (none)")
    for name in columns:
        base_name = name[len(manager.prefix):]
        print(f"  - {name}  ({format_base_name_for_display(base_name)})")
    return True


def ensure_column(engine, title):
    try:
        base_name = sanitize_title_to_base_name(title, settings.BASE_NAME_MAX_LENGTH)
    except EmptyBaseNameError:
        logger.error(f"Title {title!r} does not produce a usable column name")
        return False
    return SchemaColumnManager(engine, settings).ensure_column(base_name)


def main(argv=None):
    """Main entry point for the check-in maintenance CLI"""
    parser = argparse.ArgumentParser(description="Manage check-in questions and site settings")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("columns", help="List question answer columns")

    ensure_parser = subparsers.add_parser("ensure-column", help="Create the answer column for a question title")
    ensure_parser.add_argument("title", help="Question title, sanitized into the column base name")

    drop_parser = subparsers.add_parser("drop-column", help="Drop an answer column (stored answers are lost)")
    drop_parser.add_argument("base_name", help="Sanitized base name, without the column prefix")

    renumber_parser = subparsers.add_parser("renumber", help="Renumber a site's question order to 0..N-1")
    renumber_parser.add_argument("site_id", type=int)

    get_parser = subparsers.add_parser("config-get", help="Read a site setting")
    get_parser.add_argument("site_id", type=int)
    get_parser.add_argument("key")

    set_parser = subparsers.add_parser("config-set", help="Update an existing site setting")
    set_parser.add_argument("site_id", type=int)
    set_parser.add_argument("key")
    set_parser.add_argument("value")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    engine = get_engine()

    if args.command == "init-db":
        success = init_db(engine, settings)
    elif args.command == "columns":
        success = show_columns(engine)
    elif args.command == "ensure-column":
        success = ensure_column(engine, args.title)
    elif args.command == "drop-column":
        success = SchemaColumnManager(engine, settings).drop_column_if_unused(args.base_name)
    elif args.command == "renumber":
        success = OrderingEngine(engine, settings).renumber(
            SITE_QUESTION_SCOPE.table, SITE_QUESTION_SCOPE.order_column,
            SITE_QUESTION_SCOPE.group_column, args.site_id
        )
    elif args.command == "config-get":
        value = SiteConfigStore(engine).get(args.site_id, args.key)
        print(value if value is not None else "(not set)")
        success = value is not None
    elif args.command == "config-set":
        success = SiteConfigStore(engine).set(args.site_id, args.key, args.value)
    else:
        parser.print_help()
        return 1

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
