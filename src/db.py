# SPDX-License-Identifier: GPL-3.0-only
"""Database connection."""

from peewee import SqliteDatabase
from playhouse.mysql_ext import MySQLConnectorDatabase

from base_logger import get_logger
from src.utils import ensure_database_exists, get_configs

logger = get_logger(__name__)

DATABASE_CONFIGS = {
    "mode": get_configs("MODE", default_value="production"),
    "host": get_configs("MYSQL_HOST", default_value="127.0.0.1"),
    "password": get_configs("MYSQL_PASSWORD"),
    "user": get_configs("MYSQL_USER", default_value="root"),
    "database": get_configs("MYSQL_DATABASE", default_value="telegram_otp"),
}


def connect():
    """Connect to the database for the configured mode.

    Returns:
        SqliteDatabase in testing mode, MySQLConnectorDatabase otherwise.
    """
    if DATABASE_CONFIGS["mode"] == "testing":
        return connect_to_sqlite()
    return connect_to_mysql()


@ensure_database_exists(
    DATABASE_CONFIGS["host"],
    DATABASE_CONFIGS["user"],
    DATABASE_CONFIGS["password"],
    DATABASE_CONFIGS["database"],
)
def connect_to_mysql():
    """Create a MySQL database handle. The connection itself opens lazily."""
    db = MySQLConnectorDatabase(
        DATABASE_CONFIGS["database"],
        user=DATABASE_CONFIGS["user"],
        password=DATABASE_CONFIGS["password"],
        host=DATABASE_CONFIGS["host"],
        charset="utf8mb4",
        collation="utf8mb4_unicode_ci",
    )
    logger.debug("Using MySQL database '%s'.", DATABASE_CONFIGS["database"])
    return db


def connect_to_sqlite(db_path=None):
    """Create a SQLite database handle, used for tests and local runs."""
    db_path = db_path or get_configs("SQLITE_DATABASE_PATH", default_value=":memory:")
    db = SqliteDatabase(db_path, pragmas={"foreign_keys": 1})
    logger.debug("Using SQLite database at %s.", db_path)
    return db
