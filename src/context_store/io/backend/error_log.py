"""
Per-destination error log.

Persistable failures are appended to ``<destination>_error_log`` and the
table is trimmed to the most recent ``max_latest_errors`` rows after every
append. Recording an error never raises and never recurses: when the append
itself is rejected, the table is recreated once and the error is dropped.
"""

from typing import Optional

from context_store.infrastructure.sql.operations.ddl import (
    ERROR_TABLE_COLUMNS,
    build_create_error_table,
    error_table_name,
)
from context_store.infrastructure.sql.operations.insert import InsertBuilder
from context_store.infrastructure.sql.operations.retention import build_purge_keep_latest
from context_store.io.backend.cache import SchemaObjectCache
from context_store.io.backend.errors import BadContextData, PersistenceError
from context_store.io.backend.executor import StatementExecutor
from context_store.io.backend.models import ErrorRecord
from context_store.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_TIMESTAMP_COLUMN = ERROR_TABLE_COLUMNS[0][0]
# UTC wall time; accepted by every TIMESTAMP column and sorts as text
ERROR_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class ErrorLogRecorder:
    """Records persistable failures into the destination's error-log table."""

    def __init__(
        self,
        executor: StatementExecutor,
        cache: SchemaObjectCache,
        enabled: bool = True,
        max_latest_errors: int = 100,
    ):
        self.executor = executor
        self.dialect = executor.dialect
        self.cache = cache
        self.enabled = enabled
        self.max_latest_errors = max_latest_errors
        self.builder = InsertBuilder(self.dialect)

    def create_error_table(self, destination: str, force: bool = False) -> None:
        """
        Create the error-log table of ``destination`` unless known to exist.

        Args:
            destination: Destination owning the error log
            force: Run the DDL even if the cache says the table exists

        Raises:
            PersistenceError: If the DDL is rejected
        """
        table = error_table_name(destination)
        if not force and self.cache.has_table(destination, table):
            return

        sql = build_create_error_table(self.dialect, destination)
        self.executor.execute(
            destination, sql, operation="error table creation", failure=PersistenceError
        )
        self.cache.add_table(destination, table)
        logger.info("backend.error_log.table_created", destination=destination, table=table)

    def insert_error(self, destination: str, query: Optional[str], error: str) -> None:
        """Append one error row stamped with the current UTC time."""
        record = ErrorRecord(error=error, query=query)
        columns = [name for name, _ in ERROR_TABLE_COLUMNS]
        sql, param_map = self.builder.insert(destination, error_table_name(destination), columns)
        params = {
            param_map["timestamp"]: record.timestamp.strftime(ERROR_TIMESTAMP_FORMAT),
            param_map["error"]: record.error,
            param_map["query"]: record.query,
        }
        self.executor.execute(
            destination, sql, params, operation="error insertion", failure=BadContextData
        )

    def purge_error_table(self, destination: str) -> int:
        """
        Delete every error row older than the ``max_latest_errors`` newest.

        Returns:
            Number of deleted rows

        Raises:
            PersistenceError: If the purge fails
        """
        sql, params = build_purge_keep_latest(
            self.dialect,
            destination,
            error_table_name(destination),
            ERROR_TIMESTAMP_COLUMN,
            self.max_latest_errors,
        )
        deleted = self.executor.execute(
            destination, sql, params, operation="error table purge", failure=PersistenceError
        )
        logger.debug("backend.error_log.purged", destination=destination, deleted=deleted)
        return deleted

    def persist(
        self, destination: str, query: Optional[str], error: BaseException
    ) -> bool:
        """
        Record ``error`` in the error log of ``destination``.

        Never raises: every failure here is logged and swallowed so the
        caller's original error is the one that propagates.

        Returns:
            True when the error row was written and the log trimmed
        """
        if not self.enabled:
            return False

        message = str(error)
        try:
            self.create_error_table(destination)
            try:
                self.insert_error(destination, query, message)
            except BadContextData as insert_error:
                logger.warning(
                    "backend.error_log.recreating_table",
                    destination=destination,
                    error=str(insert_error),
                )
                self.create_error_table(destination, force=True)
                logger.error(
                    "backend.error_log.persist_abandoned",
                    destination=destination,
                    original_error=message,
                )
                return False
            self.purge_error_table(destination)
        except Exception as e:
            logger.error(
                "backend.error_log.persist_failed",
                destination=destination,
                original_error=message,
                error=str(e),
            )
            return False

        logger.info("backend.error_log.persisted", destination=destination)
        return True
