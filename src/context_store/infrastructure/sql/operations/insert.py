"""
SQL INSERT statement builders.

Provides the history INSERT and the latest-value UPSERT used by the
transactional writer and the plain insert path. Statements always use
indexed bind parameters; ``bind`` turns row dictionaries into the matching
executemany parameter list.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.parameters import adapt_value, build_indexed_params
from ..dialects.base import DialectAdapter


class InsertBuilder:
    """
    High-level builder for INSERT statements.

    Example:
        >>> from context_store.infrastructure.sql import InsertBuilder, PostgreSQLDialect
        >>> builder = InsertBuilder(PostgreSQLDialect())
        >>> sql, params = builder.insert("sensors", "temp_readings", ["recvTime", "temp"])
        >>> print(sql)
        INSERT INTO "sensors"."temp_readings" ("recvTime", "temp") VALUES (:col_0, :col_1)
    """

    def __init__(self, dialect: DialectAdapter):
        """
        Initialize the InsertBuilder.

        Args:
            dialect: SQL dialect to use for statement generation
        """
        self.dialect = dialect

    def insert(
        self, destination: str, table: str, columns: List[str]
    ) -> Tuple[str, Dict[str, str]]:
        """
        Build a simple INSERT statement.

        Args:
            destination: Destination (schema or database) of the table
            table: Table name
            columns: List of column names

        Returns:
            Tuple of (INSERT SQL statement, column to parameter mapping)
        """
        param_map, placeholders = build_indexed_params(columns)
        table_ref = self.dialect.qualify(destination, table)
        quoted_cols = ", ".join(self.dialect.quote(c) for c in columns)
        values = ", ".join(placeholders)
        sql = f"INSERT INTO {table_ref} ({quoted_cols}) VALUES ({values})"
        return sql, param_map

    def upsert_latest(
        self,
        destination: str,
        table: str,
        columns: List[str],
        unique_key: str,
        timestamp_key: str,
        parse_timestamps: bool = False,
    ) -> Tuple[str, Dict[str, str]]:
        """
        Build the last-writer-wins upsert for a latest-value table.

        Args:
            destination: Destination (schema or database) of the table
            table: Latest-value table name (suffix already applied)
            columns: List of column names to insert
            unique_key: Column identifying the row to keep current
            timestamp_key: Column deciding which version is newer
            parse_timestamps: Compare timestamps through :timestamp_format

        Returns:
            Tuple of (UPSERT SQL statement, column to parameter mapping)

        Raises:
            ValueError: If unique_key or timestamp_key is not a column
        """
        for key in (unique_key, timestamp_key):
            if key not in columns:
                raise ValueError(f"Column '{key}' missing from upsert columns {columns}")

        param_map, placeholders = build_indexed_params(columns)
        sql = self.dialect.build_upsert_latest(
            self.dialect.qualify(destination, table),
            columns,
            placeholders,
            unique_key,
            timestamp_key,
            parse_timestamps,
        )
        return sql, param_map

    @staticmethod
    def bind(
        records: Sequence[Mapping[str, Any]],
        param_map: Dict[str, str],
        native: bool = True,
        extra: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Build the executemany parameter list for ``records``.

        Args:
            records: Row dictionaries keyed by column name
            param_map: Column to parameter mapping returned by the builder
            native: Pass typed values through instead of their text form
            extra: Parameters shared by every row (e.g. timestamp_format)

        Returns:
            One parameter dictionary per row
        """
        params = []
        for record in records:
            row = {
                param: adapt_value(record.get(column), native)
                for column, param in param_map.items()
            }
            if extra:
                row.update(extra)
            params.append(row)
        return params
