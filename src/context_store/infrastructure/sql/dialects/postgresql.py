"""
PostgreSQL-specific SQL dialect implementation.

Every destination is a schema inside one shared database, so tables are
always schema-qualified and all pools connect to the configured default
database.
"""

from typing import Any, List

from .base import DDLObject, DialectAdapter

# SQLSTATE query_canceled, raised when statement_timeout expires
QUERY_CANCELED = "57014"


class PostgreSQLDialect(DialectAdapter):
    """PostgreSQL SQL dialect implementation."""

    name = "postgresql"
    default_driver = "psycopg2"
    default_port = 5432
    timeout_codes = frozenset({QUERY_CANCELED})
    # System column; stable for the duration of a single DELETE
    row_identity = "ctid"

    def ddl_prefix(self, kind: DDLObject) -> str:
        if kind == "destination":
            return "CREATE SCHEMA IF NOT EXISTS"
        return super().ddl_prefix(kind)

    def error_code(self, exc: BaseException) -> Any:
        orig = getattr(exc, "orig", None) or exc
        # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
        return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)

    def timestamp_expr(self, expression: str, parse: bool) -> str:
        if parse:
            return f"to_timestamp({expression}, :timestamp_format)"
        return expression

    def build_upsert_latest(
        self,
        table_ref: str,
        columns: List[str],
        placeholders: List[str],
        unique_key: str,
        timestamp_key: str,
        parse_timestamps: bool = False,
    ) -> str:
        """
        Build INSERT ... ON CONFLICT DO UPDATE guarded by the timestamp column.

        The existing row is overwritten only when the incoming timestamp is
        not older than the stored one.

        Args:
            table_ref: Qualified latest-value table
            columns: Column names to insert
            placeholders: Bind placeholders, one per column
            unique_key: Conflict column
            timestamp_key: Column ordering the versions of a key
            parse_timestamps: Compare through to_timestamp(:timestamp_format)

        Returns:
            Upsert SQL statement
        """
        quoted_cols = ", ".join(self.quote(c) for c in columns)
        values = ", ".join(placeholders)
        key = self.quote(unique_key)

        update_columns = [c for c in columns if c != unique_key] or [unique_key]
        update_set = ", ".join(
            f"{self.quote(col)} = EXCLUDED.{self.quote(col)}" for col in update_columns
        )
        stored = self.timestamp_expr(f"latest.{self.quote(timestamp_key)}", parse_timestamps)
        incoming = self.timestamp_expr(
            f"EXCLUDED.{self.quote(timestamp_key)}", parse_timestamps
        )

        return (
            f"INSERT INTO {table_ref} AS latest ({quoted_cols}) VALUES ({values}) "
            f"ON CONFLICT ({key}) DO UPDATE SET {update_set} "
            f"WHERE {stored} <= {incoming}"
        )
