# init_db.py (in backend folder)

"""
Create the chat tables, optionally dropping them first.

    python init_db.py          # create missing tables
    python init_db.py --drop   # wipe users and messages, then recreate
"""

import argparse
import logging

from sqlalchemy import inspect

from app.infra.postgres import Base, engine, init_db, test_connection
from app.models.message import Message  # noqa: F401
from app.models.user import User  # noqa: F401
from app.utils.logger import setup_logger

logger = logging.getLogger("init_db")


def describe_tables():
    inspector = inspect(engine)
    tables = inspector.get_table_names()
    for table in tables:
        columns = ", ".join(col["name"] for col in inspector.get_columns(table))
        logger.info("%s: %s", table, columns)
    return tables


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("--drop", action="store_true", help="drop every table before creating")
    args = ap.parse_args(argv)

    if not test_connection():
        logger.error("Database unreachable, check DATABASE_URL / DB_* settings")
        return 1

    if args.drop:
        logger.warning("Dropping all tables")
        Base.metadata.drop_all(bind=engine)

    init_db()
    describe_tables()
    return 0


if __name__ == "__main__":
    setup_logger()
    raise SystemExit(main())
