"""
SQL identifier handling utilities.

Provides functions for quoting and qualifying SQL identifiers (destinations,
table names, column names) so that entity-derived names such as
``Room1_Room`` or ``recvTime`` survive case folding and cannot be used for
SQL injection.
"""

from typing import Optional

_QUOTE_CHARS = {"mysql": "`", "postgresql": '"'}


def quote_identifier(name: str, dialect: str = "postgresql") -> str:
    """
    Quote a SQL identifier (destination, table or column name).

    Args:
        name: The identifier to quote
        dialect: Database dialect ("postgresql", "mysql")

    Returns:
        Properly quoted identifier

    Raises:
        ValueError: If name is empty or not a string

    Examples:
        >>> quote_identifier("recvTime")
        '"recvTime"'
        >>> quote_identifier("temp_readings", dialect="mysql")
        '`temp_readings`'
        >>> quote_identifier('bad"name')
        '"bad""name"'
    """
    if not name or not isinstance(name, str):
        raise ValueError("Identifier name must be non-empty string")

    quote = _QUOTE_CHARS.get(dialect, '"')
    # Escape the quote character by doubling it
    escaped = name.replace(quote, quote * 2)
    return f"{quote}{escaped}{quote}"


def qualify_table(
    table: str, schema: Optional[str] = None, dialect: str = "postgresql"
) -> str:
    """
    Create a table reference with an optional schema prefix.

    Both parts are quoted individually.

    Args:
        table: Table name
        schema: Optional schema name
        dialect: Database dialect

    Returns:
        Qualified table name

    Examples:
        >>> qualify_table("temp_readings", schema="sensors")
        '"sensors"."temp_readings"'
        >>> qualify_table("temp_readings")
        '"temp_readings"'
        >>> qualify_table("temp_readings", schema="", dialect="mysql")
        '`temp_readings`'
    """
    quoted_table = quote_identifier(table, dialect)
    if schema and str(schema).strip():
        return f"{quote_identifier(str(schema), dialect)}.{quoted_table}"
    return quoted_table
