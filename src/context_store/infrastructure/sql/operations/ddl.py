"""
DDL statement builders for destinations, data tables and error-log tables.
"""

from typing import List, Tuple

from ..dialects.base import DialectAdapter

ERROR_TABLE_SUFFIX = "_error_log"

# (column, type) pairs of every error-log table
ERROR_TABLE_COLUMNS: List[Tuple[str, str]] = [
    ("timestamp", "TIMESTAMP"),
    ("error", "TEXT"),
    ("query", "TEXT"),
]


def error_table_name(destination: str) -> str:
    """Name of the error-log table of ``destination``."""
    return f"{destination}{ERROR_TABLE_SUFFIX}"


def build_create_destination(dialect: DialectAdapter, destination: str) -> str:
    """
    Build the idempotent CREATE DATABASE / CREATE SCHEMA statement.

    Examples:
        >>> from context_store.infrastructure.sql import MySQLDialect
        >>> build_create_destination(MySQLDialect(), "sensors")
        'CREATE DATABASE IF NOT EXISTS `sensors`'
    """
    return f"{dialect.ddl_prefix('destination')} {dialect.quote(destination)}"


def build_create_table(
    dialect: DialectAdapter, destination: str, table: str, column_spec: str
) -> str:
    """
    Build the idempotent CREATE TABLE statement.

    Args:
        dialect: SQL dialect
        destination: Destination holding the table
        table: Table name
        column_spec: Pre-rendered column clause with quoted identifiers,
            e.g. '("recvTime" TEXT, "temp" TEXT)'. Every generated statement
            quotes column names, so unquoted names fold to lowercase on
            PostgreSQL and are then not found.

    Returns:
        CREATE TABLE IF NOT EXISTS statement
    """
    table_ref = dialect.qualify(destination, table)
    return f"{dialect.ddl_prefix('table')} {table_ref} {column_spec.strip()}"


def error_table_columns(dialect: DialectAdapter) -> List[Tuple[str, str]]:
    """
    Declared (column, type) pairs of the error log in ``dialect``.

    Examples:
        >>> from context_store.infrastructure.sql import MySQLDialect
        >>> error_table_columns(MySQLDialect())[:2]
        [('id', 'BIGINT AUTO_INCREMENT PRIMARY KEY'), ('timestamp', 'TIMESTAMP(6)')]
    """
    columns = [
        (name, dialect.timestamp_type if sql_type == "TIMESTAMP" else sql_type)
        for name, sql_type in ERROR_TABLE_COLUMNS
    ]
    identity = dialect.row_identity_column()
    return [identity] + columns if identity else columns


def build_create_error_table(dialect: DialectAdapter, destination: str) -> str:
    """Build the CREATE TABLE statement of the destination's error log."""
    columns = ", ".join(
        f"{dialect.quote(name)} {sql_type}"
        for name, sql_type in error_table_columns(dialect)
    )
    return build_create_table(
        dialect, destination, error_table_name(destination), f"({columns})"
    )
