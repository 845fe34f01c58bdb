"""
Single-statement execution over pooled connections.

Each call checks a connection out of the destination's pool, runs one
statement in its own transaction, and returns the connection on every exit
path. Failures are rolled back and wrapped into a typed backend error that
carries the statement text.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, Union

from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.engine import Connection, RowMapping

from context_store.infrastructure.sql.dialects.base import DialectAdapter
from context_store.io.backend.errors import (
    ContextStoreError,
    PersistenceError,
    classify_statement_error,
)
from context_store.io.backend.pool import ConnectionPoolManager
from context_store.utils.logging import get_logger

logger = get_logger(__name__)

Params = Union[Dict[str, Any], Sequence[Dict[str, Any]], None]


def rollback_quietly(connection: Connection, dialect: DialectAdapter) -> None:
    """Roll back, logging instead of raising if that fails too."""
    try:
        connection.rollback()
    except Exception as e:
        logger.error("backend.sql.rollback_failed", dialect=dialect.name, error=str(e))


class StatementExecutor:
    """Runs single statements against a destination."""

    def __init__(self, pool: ConnectionPoolManager, dialect: DialectAdapter):
        self.pool = pool
        self.dialect = dialect

    def execute(
        self,
        destination: str,
        statement: str,
        params: Params = None,
        *,
        operation: str,
        failure: Type[ContextStoreError] = PersistenceError,
    ) -> int:
        """
        Execute and commit one statement (executemany when params is a list).

        Args:
            destination: Destination whose pool serves the statement
            statement: SQL text with named bind parameters
            params: Bind parameters
            operation: Operation name used in errors and logs
            failure: Error kind for SQL failures that are not timeouts

        Returns:
            Number of affected rows reported by the driver (0 when unknown)
        """
        with self.pool.acquire(destination) as connection:
            try:
                logger.debug(
                    "backend.sql.execute",
                    dialect=self.dialect.name,
                    destination=destination,
                    statement=statement,
                )
                result = connection.execute(text(statement), params)
                connection.commit()
                return max(result.rowcount, 0)
            except sa_exc.SQLAlchemyError as e:
                rollback_quietly(connection, self.dialect)
                raise classify_statement_error(
                    self.dialect, e, operation, query=statement, default=failure
                ) from e

    def fetch_all(
        self,
        destination: str,
        statement: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        operation: str,
    ) -> List[RowMapping]:
        """
        Run a query and materialize every row.

        The returned rows are plain mappings that stay readable after the
        connection has gone back to the pool.
        """
        with self.pool.acquire(destination) as connection:
            try:
                logger.debug(
                    "backend.sql.query",
                    dialect=self.dialect.name,
                    destination=destination,
                    statement=statement,
                )
                rows = connection.execute(text(statement), params).mappings().all()
                connection.commit()
                return list(rows)
            except sa_exc.SQLAlchemyError as e:
                rollback_quietly(connection, self.dialect)
                raise classify_statement_error(
                    self.dialect, e, operation, query=statement, default=PersistenceError
                ) from e
