"""
Transactional dual write: append-only history plus latest-value upsert.

Both batches run on one connection inside one explicit transaction. Either
both are committed or neither is.
"""

import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import exc as sa_exc
from sqlalchemy import text

from context_store.infrastructure.sql.core.parameters import columns_to_records
from context_store.infrastructure.sql.dialects.base import DialectAdapter
from context_store.infrastructure.sql.operations.insert import InsertBuilder
from context_store.io.backend.errors import BadContextData, classify_statement_error
from context_store.io.backend.executor import rollback_quietly
from context_store.io.backend.models import WriteResult
from context_store.io.backend.pool import ConnectionPoolManager
from context_store.utils.logging import get_logger

logger = get_logger(__name__)

Columns = Mapping[str, Sequence[Any]]
Statement = Tuple[str, List[Dict[str, Any]]]


class TransactionalWriter:
    """Writes history rows and latest-value rows atomically."""

    def __init__(self, pool: ConnectionPoolManager, dialect: DialectAdapter):
        self.pool = pool
        self.dialect = dialect
        self.builder = InsertBuilder(dialect)

    def _prepare(
        self,
        history: Columns,
        latest: Columns,
        destination: str,
        table: str,
        latest_table: str,
        unique_key: str,
        timestamp_key: str,
        timestamp_format: Optional[str],
        use_native_types: bool,
    ) -> Tuple[Optional[Statement], Optional[Statement]]:
        """Build both statements and their parameter lists, or fail before any SQL."""
        try:
            history_rows = columns_to_records(history)
            latest_rows = columns_to_records(latest)

            insert_stmt = None
            if history_rows:
                sql, param_map = self.builder.insert(destination, table, list(history))
                insert_stmt = (
                    sql,
                    self.builder.bind(history_rows, param_map, native=use_native_types),
                )

            upsert_stmt = None
            if latest_rows:
                parse = bool(timestamp_format) and not use_native_types
                sql, param_map = self.builder.upsert_latest(
                    destination,
                    latest_table,
                    list(latest),
                    unique_key,
                    timestamp_key,
                    parse_timestamps=parse,
                )
                extra = {"timestamp_format": timestamp_format} if parse else None
                upsert_stmt = (
                    sql,
                    self.builder.bind(
                        latest_rows, param_map, native=use_native_types, extra=extra
                    ),
                )
        except ValueError as e:
            raise BadContextData(
                self.dialect.name, type(e).__name__, str(e), operation="data upsert"
            ) from e
        return insert_stmt, upsert_stmt

    def upsert(
        self,
        history: Columns,
        latest: Columns,
        destination: str,
        table: str,
        latest_suffix: str,
        unique_key: str,
        timestamp_key: str,
        timestamp_format: Optional[str] = None,
        use_native_types: bool = True,
    ) -> WriteResult:
        """
        Append history rows and upsert latest-value rows in one transaction.

        A latest row replaces the stored row with the same ``unique_key`` only
        when its ``timestamp_key`` value is not older than the stored one.

        Args:
            history: Column-oriented history batch (field -> values)
            latest: Column-oriented latest-value batch (field -> values)
            destination: Destination holding both tables
            table: History table; the latest table is ``table + latest_suffix``
            latest_suffix: Suffix naming the latest-value table
            unique_key: Column identifying an entity in the latest table
            timestamp_key: Column ordering versions of an entity
            timestamp_format: Format used to parse text timestamps, if any
            use_native_types: Bind typed values instead of their text form

        Returns:
            WriteResult with row counts and duration

        Raises:
            BadContextData: Malformed batch or SQL rejected by the database
            PersistenceError: Statement timeout
            ConnectivityError: Connection unavailable or lost
        """
        latest_table = f"{table}{latest_suffix}"
        insert_stmt, upsert_stmt = self._prepare(
            history,
            latest,
            destination,
            table,
            latest_table,
            unique_key,
            timestamp_key,
            timestamp_format,
            use_native_types,
        )

        start_time = time.perf_counter()
        current_sql = None
        with self.pool.acquire(destination) as connection:
            try:
                connection.begin()
                for statement in (insert_stmt, upsert_stmt):
                    if statement is None:
                        continue
                    current_sql, params = statement
                    logger.debug(
                        "backend.transaction.execute",
                        destination=destination,
                        statement=current_sql,
                        rows=len(params),
                    )
                    connection.execute(text(current_sql), params)
                connection.commit()
            except sa_exc.SQLAlchemyError as e:
                rollback_quietly(connection, self.dialect)
                logger.error(
                    "backend.transaction.rolled_back",
                    destination=destination,
                    table=table,
                    error=str(e),
                )
                raise classify_statement_error(
                    self.dialect, e, "data upsert", query=current_sql, default=BadContextData
                ) from e

        result = WriteResult(
            destination=destination,
            table=table,
            rows_inserted=len(insert_stmt[1]) if insert_stmt else 0,
            rows_upserted=len(upsert_stmt[1]) if upsert_stmt else 0,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        logger.info(
            "backend.transaction.committed",
            destination=destination,
            table=table,
            latest_table=latest_table,
            rows_inserted=result.rows_inserted,
            rows_upserted=result.rows_upserted,
            duration_ms=round(result.duration_ms, 2),
        )
        return result
