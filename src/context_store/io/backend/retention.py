"""
Row-count capping and time-based expiration.

Both work snapshot-then-delete: every row of the table is read oldest first,
the rows to drop are picked in memory and removed with a single DELETE keyed
by their timestamp values. The two steps do not run in one transaction, so a
row inserted in between is never deleted by the running pass.
"""

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import pandas as pd
from sqlalchemy.engine import RowMapping

from context_store.infrastructure.sql.operations.ddl import ERROR_TABLE_SUFFIX
from context_store.infrastructure.sql.operations.retention import (
    build_delete_matching,
    build_select_ordered,
)
from context_store.io.backend.cache import SchemaObjectCache
from context_store.io.backend.errors import ContextStoreError, PersistenceError
from context_store.io.backend.executor import StatementExecutor
from context_store.io.backend.models import DEFAULT_TIMESTAMP_COLUMN, RetentionPolicy
from context_store.utils.logging import get_logger

logger = get_logger(__name__)

FailureHook = Callable[[str, ContextStoreError], None]


def parse_timestamp(value: Any) -> pd.Timestamp:
    """
    Parse a stored timestamp into a UTC ``pd.Timestamp``.

    Accepts ISO-8601 strings and datetimes. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is empty or cannot be parsed
    """
    try:
        parsed = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Unparseable timestamp {value!r}: {e}") from e
    if pd.isna(parsed):
        raise ValueError(f"Unparseable timestamp {value!r}")
    if parsed.tzinfo is None:
        return parsed.tz_localize("UTC")
    return parsed.tz_convert("UTC")


class RetentionEnforcer:
    """Applies record caps and expiration to cached tables."""

    def __init__(
        self,
        executor: StatementExecutor,
        cache: SchemaObjectCache,
        timestamp_column: str = DEFAULT_TIMESTAMP_COLUMN,
    ):
        self.executor = executor
        self.dialect = executor.dialect
        self.cache = cache
        self.timestamp_column = timestamp_column

    def snapshot(
        self, destination: str, table: str, timestamp_column: Optional[str] = None
    ) -> List[RowMapping]:
        """Read every row of ``table`` ordered by timestamp ascending."""
        sql = build_select_ordered(
            self.dialect, destination, table, timestamp_column or self.timestamp_column
        )
        return self.executor.fetch_all(destination, sql, operation="records snapshot")

    def _timestamp_of(self, row: RowMapping, column: str, table: str) -> Any:
        if column not in row:
            raise PersistenceError(
                self.dialect.name,
                "KeyError",
                f"Column '{column}' not found in table '{table}'",
                operation="records snapshot",
            )
        return row[column]

    def _delete(
        self, destination: str, table: str, column: str, values: List[Any], operation: str
    ) -> int:
        sql, params = build_delete_matching(self.dialect, destination, table, column, values)
        deleted = self.executor.execute(
            destination, sql, params, operation=operation, failure=PersistenceError
        )
        logger.info(
            "backend.retention.deleted",
            destination=destination,
            table=table,
            operation=operation,
            deleted=deleted,
        )
        return deleted

    def cap_records(
        self,
        destination: str,
        table: str,
        max_records: int,
        timestamp_column: Optional[str] = None,
    ) -> int:
        """
        Keep at most ``max_records`` rows, deleting the oldest ones.

        Rows sharing a timestamp with a deleted row are deleted too.

        Returns:
            Number of deleted rows (0 when the table is within the cap)

        Raises:
            ValueError: If max_records is negative
            PersistenceError: If the snapshot or the delete fails
        """
        if max_records < 0:
            raise ValueError("max_records must be >= 0")
        column = timestamp_column or self.timestamp_column
        rows = self.snapshot(destination, table, column)
        excess = len(rows) - max_records
        if excess <= 0:
            logger.debug(
                "backend.retention.within_cap",
                destination=destination,
                table=table,
                rows=len(rows),
                max_records=max_records,
            )
            return 0

        values = [self._timestamp_of(row, column, table) for row in rows[:excess]]
        return self._delete(destination, table, column, values, "records capping")

    def expire_table(
        self,
        destination: str,
        table: str,
        expiration_seconds: int,
        now: Optional[datetime] = None,
        timestamp_column: Optional[str] = None,
    ) -> int:
        """
        Delete the rows of one table older than ``expiration_seconds``.

        Rows are walked oldest first and the walk stops at the first row that
        is not expired, so timestamps are expected to be non-decreasing.

        Returns:
            Number of deleted rows
        """
        column = timestamp_column or self.timestamp_column
        threshold = parse_timestamp(now or datetime.now(timezone.utc)) - pd.Timedelta(
            seconds=expiration_seconds
        )

        rows = self.snapshot(destination, table, column)
        expired = []
        for row in rows:
            value = self._timestamp_of(row, column, table)
            try:
                parsed = parse_timestamp(value)
            except ValueError as e:
                raise PersistenceError(
                    self.dialect.name, "ValueError", str(e), operation="records expiration"
                ) from e
            if parsed >= threshold:
                break
            expired.append(value)

        if not expired:
            return 0
        return self._delete(destination, table, column, expired, "records expiration")

    def expirate_records_cache(
        self,
        expiration_seconds: int,
        now: Optional[datetime] = None,
        on_failure: Optional[FailureHook] = None,
    ) -> int:
        """
        Expire old rows in every table known to the cache.

        Error-log tables are skipped. The sweep stops at the first failing
        table; ``on_failure`` is called with its destination before the error
        is re-raised.

        Returns:
            Total number of deleted rows
        """
        now = now or datetime.now(timezone.utc)
        total = 0
        for destination in self.cache.destinations():
            for table in self.cache.tables(destination):
                if table.endswith(ERROR_TABLE_SUFFIX):
                    continue
                try:
                    total += self.expire_table(destination, table, expiration_seconds, now)
                except ContextStoreError as e:
                    if on_failure is not None:
                        on_failure(destination, e)
                    raise

        logger.info(
            "backend.retention.sweep_completed",
            expiration_seconds=expiration_seconds,
            deleted=total,
        )
        return total

    def apply_policy(
        self,
        destination: str,
        table: str,
        policy: RetentionPolicy,
        now: Optional[datetime] = None,
    ) -> int:
        """Apply the cap, then the age limit, of ``policy`` to one table."""
        deleted = 0
        if policy.max_records is not None:
            deleted += self.cap_records(
                destination, table, policy.max_records, policy.timestamp_column
            )
        if policy.max_age_seconds is not None:
            deleted += self.expire_table(
                destination, table, policy.max_age_seconds, now, policy.timestamp_column
            )
        return deleted
