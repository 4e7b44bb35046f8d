# SPDX-License-Identifier: GPL-3.0-only
"""Utilities module."""

import os
import re
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

import mysql.connector
from peewee import DatabaseError

from base_logger import get_logger

logger = get_logger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
MAX_PAGE_LIMIT = 100


def create_tables(models: List[Any]) -> None:
    """Create tables for given Peewee models if they don't exist.

    Args:
        models: List of Peewee Model classes.
    """
    if not models:
        logger.warning("No models provided for table creation.")
        return

    try:
        databases = {}
        for model in models:
            database = model._meta.database
            if database not in databases:
                databases[database] = []
            databases[database].append(model)

        for database, db_models in databases.items():
            with database.atomic():
                existing_tables = set(database.get_tables())
                tables_to_create = [
                    model
                    for model in db_models
                    if model._meta.table_name not in existing_tables
                ]

                if tables_to_create:
                    database.create_tables(tables_to_create)
                    logger.info(
                        "Created tables: %s",
                        [model._meta.table_name for model in tables_to_create],
                    )
                else:
                    logger.debug("No new tables to create.")

    except DatabaseError as e:
        logger.error("An error occurred while creating tables: %s", e)


def ensure_database_exists(
    host: str, user: str, password: str, database_name: str
) -> Callable:
    """Decorator to ensure MySQL database exists before function execution.

    Args:
        host: MySQL server host address.
        user: MySQL username.
        password: MySQL password.
        database_name: Database name.

    Returns:
        Decorated function.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                with mysql.connector.connect(
                    host=host,
                    user=user,
                    password=password,
                    charset="utf8mb4",
                    collation="utf8mb4_unicode_ci",
                ) as connection:
                    with connection.cursor() as cursor:
                        sql = "CREATE DATABASE IF NOT EXISTS " + database_name
                        cursor.execute(sql)

            except mysql.connector.Error as error:
                logger.error("Failed to create database: %s", error)

            return func(*args, **kwargs)

        return wrapper

    return decorator


def get_configs(config_name: str, strict: bool = False, default_value: str = "") -> str:
    """Retrieve configuration from environment variables.

    Args:
        config_name: Configuration name.
        strict: If True, raises error if not found.
        default_value: Default value if not found and not strict.

    Returns:
        Configuration value.

    Raises:
        KeyError: If strict is True and config not found.
        ValueError: If strict is True and value is empty.
    """
    try:
        value = (
            os.environ[config_name]
            if strict
            else os.environ.get(config_name) or default_value
        )
        if strict and (value is None or value.strip() == ""):
            raise ValueError(f"Configuration '{config_name}' is missing or empty.")
        return value
    except KeyError as error:
        logger.error(
            "Configuration '%s' not found in environment variables: %s",
            config_name,
            error,
        )
        raise
    except ValueError as error:
        logger.error("Configuration '%s' is empty: %s", config_name, error)
        raise


def get_bool_config(key: str, default_value: bool = False) -> bool:
    """Retrieve config value as boolean.

    Args:
        key: Configuration key.
        default_value: Default if missing or invalid.

    Returns:
        Boolean value.
    """
    value = get_configs(key)
    if not value:
        return default_value

    value = value.strip().lower()
    if value in {"true", "1", "yes", "on"}:
        return True
    elif value in {"false", "0", "no", "off"}:
        return False
    return default_value


def get_int_config(key: str, default_value: int) -> int:
    """Retrieve config value as integer, falling back on malformed input."""
    value = get_configs(key)
    if not value:
        return default_value

    try:
        return int(value.strip())
    except ValueError:
        logger.warning(
            "Configuration '%s' is not an integer (%s). Using %d.",
            key,
            value,
            default_value,
        )
        return default_value


def set_configs(config_name: str, config_value: Any) -> None:
    """Set environment variable configuration.

    Args:
        config_name: Configuration name.
        config_value: Configuration value.

    Raises:
        ValueError: If config_name is empty.
    """
    if not config_name:
        error_message = (
            f"Cannot set configuration. Invalid config_name '{config_name}'."
        )
        logger.error(error_message)
        raise ValueError(error_message)

    try:
        if isinstance(config_value, bool):
            config_value = str(config_value).lower()
        os.environ[config_name] = str(config_value)
    except Exception as error:
        logger.error("Failed to set configuration '%s': %s", config_name, error)
        raise


def validate_query_args(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Validate listing arguments and return them parsed.

    Args:
        start_date: Inclusive start date in "YYYY-MM-DD" format.
        end_date: Inclusive end date in "YYYY-MM-DD" format.
        page: Page number, starting at 1.
        limit: Records per page, capped at MAX_PAGE_LIMIT.

    Returns:
        Dict with ``start``, ``end`` (datetimes or None), ``page`` and ``limit``.

    Raises:
        ValueError: If validation fails.
    """
    start_dt = end_dt = None

    if start_date is not None:
        if not re.match(DATE_PATTERN, start_date):
            raise ValueError(
                f"Invalid 'start_date' format: '{start_date}'. "
                "Please provide a date in the 'YYYY-MM-DD' format."
            )
        start_dt = parse_date(start_date, "start_date")

    if end_date is not None:
        if not re.match(DATE_PATTERN, end_date):
            raise ValueError(
                f"Invalid 'end_date' format: '{end_date}'. "
                "Please provide a date in the 'YYYY-MM-DD' format."
            )
        end_dt = parse_date(end_date, "end_date").replace(
            hour=23, minute=59, second=59, microsecond=999999
        )

    if start_dt and end_dt and start_dt > end_dt:
        raise ValueError("'start_date' must be earlier than 'end_date'.")

    for arg, name in [(page, "page"), (limit, "limit")]:
        if arg is not None:
            if not isinstance(arg, int) or isinstance(arg, bool):
                raise ValueError(f"'{name}' must be an integer: {arg}")
            if arg <= 0:
                raise ValueError(f"'{name}' must be a positive integer: {arg}")

    return {
        "start": start_dt,
        "end": end_dt,
        "page": page or 1,
        "limit": min(limit or 20, MAX_PAGE_LIMIT),
    }


def parse_date(date_str: str, field_name: str) -> datetime:
    """Validate and parse date string in YYYY-MM-DD format.

    Args:
        date_str: Date string to parse.
        field_name: Field name for error messages.

    Returns:
        Parsed datetime object.

    Raises:
        ValueError: If date format is invalid.
    """
    try:
        parsed_date = datetime.strptime(date_str, "%Y-%m-%d")
        return parsed_date
    except ValueError as e:
        error_message = str(e)

        if "unconverted data remains" in error_message:
            raise ValueError(
                f"Invalid '{field_name}': '{date_str}'. Format must be 'YYYY-MM-DD'."
            ) from e
        if "month must be in" in error_message:
            raise ValueError(
                f"Invalid '{field_name}': '{date_str}'. The month value is out of range (01-12)."
            ) from e
        if "day is out of range" in error_message:
            raise ValueError(
                f"Invalid '{field_name}': '{date_str}'. The day is out of range for "
                "the given month and year."
            ) from e
        if "does not match format" in error_message:
            raise ValueError(
                f"Invalid '{field_name}': '{date_str}'. Format must be 'YYYY-MM-DD'."
            ) from e

        raise ValueError(
            f"Invalid '{field_name}': '{date_str}'. {error_message}"
        ) from e
