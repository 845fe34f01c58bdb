"""
MySQL-specific SQL dialect implementation.

A destination is a MySQL database: it is addressed directly in the
connection URL and tables are referenced unqualified.
"""

from typing import List, Optional, Tuple

from .base import DDLObject, DialectAdapter

# ER_LOCK_WAIT_TIMEOUT, ER_QUERY_TIMEOUT (max_execution_time), MariaDB ER_STATEMENT_TIMEOUT
MYSQL_TIMEOUT_ERRORS = frozenset({1205, 3024, 1969})


class MySQLDialect(DialectAdapter):
    """MySQL SQL dialect implementation."""

    name = "mysql"
    default_driver = "pymysql"
    default_port = 3306
    timeout_codes = MYSQL_TIMEOUT_ERRORS
    # Plain TIMESTAMP truncates to whole seconds
    timestamp_type = "TIMESTAMP(6)"
    row_identity = "id"

    def row_identity_column(self) -> Optional[Tuple[str, str]]:
        return (self.row_identity, "BIGINT AUTO_INCREMENT PRIMARY KEY")

    def qualify(self, destination: str, table: str) -> str:
        # The connection already selects the destination database
        return self.quote(table)

    def ddl_prefix(self, kind: DDLObject) -> str:
        if kind == "destination":
            return "CREATE DATABASE IF NOT EXISTS"
        return super().ddl_prefix(kind)

    def database_for(self, destination: str, default_database: str) -> Optional[str]:
        return destination or None

    def timestamp_expr(self, expression: str, parse: bool) -> str:
        if parse:
            return f"STR_TO_DATE({expression}, :timestamp_format)"
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
        Build INSERT ... ON DUPLICATE KEY UPDATE guarded by the timestamp column.

        MySQL evaluates the assignments left to right, so the timestamp column
        is assigned last and every guard still sees the stored timestamp.
        """
        quoted_cols = ", ".join(self.quote(c) for c in columns)
        values = ", ".join(placeholders)

        stored = self.timestamp_expr(self.quote(timestamp_key), parse_timestamps)
        incoming = self.timestamp_expr(
            f"VALUES({self.quote(timestamp_key)})", parse_timestamps
        )
        newer = f"{stored} <= {incoming}"

        update_columns = [c for c in columns if c not in (unique_key, timestamp_key)]
        if timestamp_key in columns:
            update_columns.append(timestamp_key)
        update_set = ", ".join(
            f"{self.quote(col)} = IF({newer}, VALUES({self.quote(col)}), {self.quote(col)})"
            for col in update_columns
        )
        if not update_set:
            update_set = f"{self.quote(unique_key)} = {self.quote(unique_key)}"

        return (
            f"INSERT INTO {table_ref} ({quoted_cols}) VALUES ({values}) "
            f"ON DUPLICATE KEY UPDATE {update_set}"
        )
