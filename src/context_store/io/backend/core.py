"""
SQL backend façade.

The only entry point the ingestion pipeline uses. It wires the pool manager,
existence cache, transactional writer, error-log recorder and retention
enforcer together, and routes persistable failures into the destination's
error log before re-raising them.
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import create_engine

from context_store.config.settings import BackendSettings, get_settings
from context_store.infrastructure.sql.dialects import get_dialect
from context_store.infrastructure.sql.operations.ddl import (
    build_create_destination,
    build_create_table,
)
from context_store.infrastructure.sql.operations.insert import InsertBuilder
from context_store.io.backend.cache import SchemaObjectCache
from context_store.io.backend.error_log import ErrorLogRecorder
from context_store.io.backend.errors import (
    BadContextData,
    ContextStoreError,
    PersistenceError,
)
from context_store.io.backend.executor import StatementExecutor
from context_store.io.backend.models import RetentionPolicy, WriteResult
from context_store.io.backend.pool import ConnectionPoolManager, EngineFactory
from context_store.io.backend.retention import RetentionEnforcer
from context_store.io.backend.transactional import TransactionalWriter
from context_store.utils.logging import get_logger

logger = get_logger(__name__)

# Pool key of server-level connections (no destination selected)
SERVER_DESTINATION = ""


class SQLBackend:
    """
    Relational storage backend for context data.

    Usage:
        with SQLBackend(BackendSettings(dialect="postgresql")) as backend:
            backend.create_destination("sensors")
            backend.create_table("sensors", "temp_readings", '("recvTime" TEXT, "temp" TEXT)')
            backend.insert_context_data(
                "sensors", "temp_readings", ["recvTime", "temp"], [["2024-01-01T00:00:00Z", "21.5"]]
            )
    """

    def __init__(
        self,
        settings: Optional[BackendSettings] = None,
        *,
        pool_manager: Optional[ConnectionPoolManager] = None,
        cache: Optional[SchemaObjectCache] = None,
        engine_factory: Optional[EngineFactory] = None,
    ):
        """
        Args:
            settings: Backend settings (``get_settings()`` when omitted)
            pool_manager: Pre-built pool manager; built from settings otherwise
            cache: Shared existence cache; a fresh one otherwise
            engine_factory: Engine factory handed to the pool manager
        """
        self.settings = settings or get_settings()
        if pool_manager is not None:
            self.dialect = pool_manager.dialect
            self.pool = pool_manager
        else:
            self.dialect = get_dialect(self.settings.dialect)
            self.pool = ConnectionPoolManager(
                self.settings, self.dialect, engine_factory or create_engine
            )
        self.cache = cache if cache is not None else SchemaObjectCache()

        self.executor = StatementExecutor(self.pool, self.dialect)
        self.writer = TransactionalWriter(self.pool, self.dialect)
        self.recorder = ErrorLogRecorder(
            self.executor,
            self.cache,
            enabled=self.settings.persist_errors,
            max_latest_errors=self.settings.max_latest_errors,
        )
        self.retention = RetentionEnforcer(self.executor, self.cache)
        self._insert_builder = InsertBuilder(self.dialect)

        logger.info(
            "backend.initialized",
            dialect=self.dialect.name,
            host=self.settings.host,
            max_pool_size=self.settings.max_pool_size,
            persist_errors=self.settings.persist_errors,
        )

    def __enter__(self) -> "SQLBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _record_failure(self, destination: str, error: ContextStoreError) -> None:
        """Send a persistable failure to the destination's error log."""
        logger.error("backend.operation_failed", destination=destination, **error.to_dict())
        if error.persistable:
            self.recorder.persist(destination, error.query, error)

    def create_destination(self, destination: str) -> None:
        """
        Create the destination (database or schema) unless known to exist.

        Failures are raised but not recorded: the destination, and with it the
        error log, may not exist.

        Raises:
            PersistenceError: If the DDL is rejected
            ConfigurationError / ConnectivityError: If no connection is available
        """
        if self.cache.has_destination(destination):
            return

        sql = build_create_destination(self.dialect, destination)
        try:
            self.executor.execute(
                SERVER_DESTINATION, sql, operation="destination creation", failure=PersistenceError
            )
        except ContextStoreError as e:
            logger.error("backend.create_destination_failed", destination=destination, **e.to_dict())
            raise
        self.cache.add_destination(destination)
        logger.info("backend.destination_created", destination=destination)

    def create_table(self, destination: str, table: str, column_spec: str) -> None:
        """
        Create ``table`` in ``destination`` unless known to exist.

        Args:
            destination: Destination holding the table
            table: Table name
            column_spec: Pre-rendered column clause, e.g. '("recvTime" TEXT, "temp" TEXT)'

        Raises:
            PersistenceError: If the DDL is rejected (also recorded)
        """
        if self.cache.has_table(destination, table):
            return

        sql = build_create_table(self.dialect, destination, table, column_spec)
        try:
            self.executor.execute(
                destination, sql, operation="table creation", failure=PersistenceError
            )
        except ContextStoreError as e:
            self._record_failure(destination, e)
            raise
        self.cache.add_table(destination, table)
        logger.info("backend.table_created", destination=destination, table=table)

    def insert_context_data(
        self,
        destination: str,
        table: str,
        field_names: Sequence[str],
        rows: Sequence[Sequence[Any]],
    ) -> int:
        """
        Insert rows into ``table`` as one batch.

        Args:
            destination: Destination holding the table
            table: Table name
            field_names: Column names, in the order of every row's values
            rows: Row values

        Returns:
            Number of rows sent

        Raises:
            BadContextData: If a row does not match field_names or the
                database rejects the data (also recorded)
        """
        columns = list(field_names)
        mismatched = [i for i, row in enumerate(rows) if len(row) != len(columns)]
        if mismatched:
            error = BadContextData(
                self.dialect.name,
                "ValueError",
                f"Rows {mismatched} do not match the {len(columns)} field names",
                operation="data insertion",
            )
            self._record_failure(destination, error)
            raise error
        if not rows:
            return 0

        sql, param_map = self._insert_builder.insert(destination, table, columns)
        params = self._insert_builder.bind(
            [dict(zip(columns, row)) for row in rows], param_map
        )
        try:
            self.executor.execute(
                destination, sql, params, operation="data insertion", failure=BadContextData
            )
        except ContextStoreError as e:
            self._record_failure(destination, e)
            raise
        self.cache.add_table(destination, table)
        logger.debug(
            "backend.data_inserted", destination=destination, table=table, rows=len(rows)
        )
        return len(rows)

    def upsert_transaction(
        self,
        history: Mapping[str, Sequence[Any]],
        latest: Mapping[str, Sequence[Any]],
        destination: str,
        table: str,
        latest_suffix: str,
        unique_key: str,
        timestamp_key: str,
        timestamp_format: Optional[str] = None,
        use_native_types: bool = True,
    ) -> WriteResult:
        """
        Append history and upsert latest values atomically (see TransactionalWriter).

        Neither table is added to the cache, so expiration sweeps never
        reach the latest-value table through an upsert.
        """
        try:
            return self.writer.upsert(
                history,
                latest,
                destination,
                table,
                latest_suffix,
                unique_key,
                timestamp_key,
                timestamp_format,
                use_native_types,
            )
        except ContextStoreError as e:
            self._record_failure(destination, e)
            raise

    def cap_records(self, destination: str, table: str, max_records: int) -> int:
        """
        Keep the ``max_records`` newest rows of ``table``; returns rows deleted.

        Raises:
            ValueError: If max_records is negative
            PersistenceError: If the snapshot or the delete fails
        """
        try:
            return self.retention.cap_records(destination, table, max_records)
        except ContextStoreError as e:
            self._record_failure(destination, e)
            raise

    def expirate_records_cache(
        self, expiration_seconds: int, now: Optional[datetime] = None
    ) -> int:
        """Delete rows older than ``expiration_seconds`` in every cached table."""
        return self.retention.expirate_records_cache(
            expiration_seconds, now, on_failure=self._record_failure
        )

    def apply_retention(
        self,
        destination: str,
        table: str,
        policy: RetentionPolicy,
        now: Optional[datetime] = None,
    ) -> int:
        """Apply a RetentionPolicy to one table; returns rows deleted."""
        try:
            return self.retention.apply_policy(destination, table, policy, now)
        except ContextStoreError as e:
            self._record_failure(destination, e)
            raise

    def create_error_table(self, destination: str) -> None:
        """Create the error-log table of ``destination`` unless known to exist."""
        self.recorder.create_error_table(destination)

    def purge_error_table(self, destination: str) -> int:
        """Trim the error log of ``destination`` to its newest rows."""
        return self.recorder.purge_error_table(destination)

    def close(self) -> None:
        """Release every connection pool."""
        self.pool.close()
        logger.info("backend.closed", dialect=self.dialect.name)
