"""
Statement builders for retention sweeps and error-log purging.

Deletes are keyed by timestamp values read from a snapshot; the values are
bound, never interpolated.
"""

from typing import Any, Dict, Sequence, Tuple

from ..dialects.base import DialectAdapter


def build_select_ordered(
    dialect: DialectAdapter, destination: str, table: str, order_column: str
) -> str:
    """Select every row of a table, oldest first."""
    table_ref = dialect.qualify(destination, table)
    return f"SELECT * FROM {table_ref} ORDER BY {dialect.quote(order_column)} ASC"


def build_delete_matching(
    dialect: DialectAdapter,
    destination: str,
    table: str,
    column: str,
    values: Sequence[Any],
) -> Tuple[str, Dict[str, Any]]:
    """
    Build a DELETE matching any of ``values`` in ``column``.

    The filter is an OR-chain of equality predicates; rows sharing a value are
    all deleted. Repeated values are bound once.

    Args:
        dialect: SQL dialect
        destination: Destination holding the table
        table: Table name
        column: Column compared against the values
        values: Values to delete

    Returns:
        Tuple of (DELETE SQL statement, parameters)

    Raises:
        ValueError: If values is empty

    Examples:
        >>> from context_store.infrastructure.sql import MySQLDialect
        >>> sql, params = build_delete_matching(
        ...     MySQLDialect(), "sensors", "temp_readings", "recvTime", ["t1", "t2", "t2"]
        ... )
        >>> sql
        'DELETE FROM `temp_readings` WHERE `recvTime` = :ts_0 OR `recvTime` = :ts_1'
        >>> params
        {'ts_0': 't1', 'ts_1': 't2'}
    """
    unique_values = list(dict.fromkeys(values))
    if not unique_values:
        raise ValueError("At least one value is required to build a DELETE filter")

    quoted = dialect.quote(column)
    params = {f"ts_{i}": value for i, value in enumerate(unique_values)}
    filters = " OR ".join(f"{quoted} = :{name}" for name in params)
    table_ref = dialect.qualify(destination, table)
    return f"DELETE FROM {table_ref} WHERE {filters}", params


def build_purge_keep_latest(
    dialect: DialectAdapter,
    destination: str,
    table: str,
    timestamp_column: str,
    keep: int,
) -> Tuple[str, Dict[str, Any]]:
    """
    Build a DELETE keeping only the ``keep`` most recent rows.

    Rows are kept by the dialect's row identity, so rows sharing a timestamp
    never push the table over ``keep``; the newest identity wins a tie.
    MySQL refuses LIMIT inside an IN subquery, hence the derived table.

    Examples:
        >>> from context_store.infrastructure.sql import MySQLDialect
        >>> sql, params = build_purge_keep_latest(
        ...     MySQLDialect(), "sensors", "sensors_error_log", "timestamp", 100
        ... )
        >>> sql
        'DELETE FROM `sensors_error_log` WHERE `id` NOT IN (SELECT row_id FROM (SELECT `id` AS row_id FROM `sensors_error_log` ORDER BY `timestamp` DESC, `id` DESC LIMIT :keep) kept_rows)'
    """
    table_ref = dialect.qualify(destination, table)
    ts = dialect.quote(timestamp_column)
    row_id = dialect.quote(dialect.row_identity)
    sql = (
        f"DELETE FROM {table_ref} WHERE {row_id} NOT IN "
        f"(SELECT row_id FROM (SELECT {row_id} AS row_id FROM {table_ref} "
        f"ORDER BY {ts} DESC, {row_id} DESC LIMIT :keep) kept_rows)"
    )
    return sql, {"keep": keep}
