"""Typed errors raised across the backend boundary.

Every low-level failure is wrapped into exactly one of the kinds below before
it leaves a backend component. Each error carries the dialect, the class name
of the underlying failure and its message; statement failures also carry the
statement text so it can be recorded in the error log.
"""

from typing import Dict, Optional, Type

from sqlalchemy import exc as sa_exc

from context_store.infrastructure.sql.dialects.base import DialectAdapter


class ContextStoreError(Exception):
    """Base class of all backend errors."""

    #: Whether the failure may be recorded in the destination's error log
    persistable = False

    def __init__(
        self,
        dialect: str,
        failure_type: str,
        message: str,
        operation: str = "operation",
        query: Optional[str] = None,
    ):
        self.dialect = dialect
        self.failure_type = failure_type
        self.message = message
        self.operation = operation
        self.query = query
        super().__init__(message)

    def __str__(self) -> str:
        return (
            f"{self.dialect.upper()} {self.operation} error "
            f"({self.failure_type}): {self.message}"
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Convert to structured dict for logging."""
        return {
            "error_type": type(self).__name__,
            "dialect": self.dialect,
            "operation": self.operation,
            "failure_type": self.failure_type,
            "message": self.message,
            "query": self.query,
        }


class BackendRuntimeError(ContextStoreError):
    """The connection layer itself is unhealthy."""


class ConfigurationError(BackendRuntimeError):
    """Driver not resolvable or pool construction failed."""


class ConnectivityError(BackendRuntimeError):
    """No connection could be obtained (pool exhausted, network failure)."""


class PersistenceError(ContextStoreError):
    """Statement timeout or an operational statement failure."""

    persistable = True


class BadContextData(ContextStoreError):
    """Statement rejected because of malformed or incompatible data."""

    persistable = True


def describe_failure(exc: BaseException) -> tuple[str, str]:
    """Return (class name, message) of the failure underlying ``exc``."""
    orig = getattr(exc, "orig", None)
    if isinstance(exc, sa_exc.DBAPIError) and orig is not None:
        return type(orig).__name__, str(orig)
    return type(exc).__name__, str(exc)


def classify_statement_error(
    dialect: DialectAdapter,
    exc: BaseException,
    operation: str,
    query: Optional[str] = None,
    default: Type[ContextStoreError] = BadContextData,
) -> ContextStoreError:
    """
    Wrap a statement failure into its error kind.

    Timeouts become PersistenceError and a connection lost mid-statement
    becomes ConnectivityError; everything else becomes ``default``.

    Args:
        dialect: Dialect that executed the statement
        exc: The low-level exception
        operation: Human readable operation name ("data insertion", ...)
        query: Statement text
        default: Kind for plain SQL failures

    Returns:
        The typed error (not raised)
    """
    if isinstance(exc, ContextStoreError):
        return exc

    failure_type, message = describe_failure(exc)
    if dialect.is_timeout(exc):
        kind: Type[ContextStoreError] = PersistenceError
    elif isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        kind = ConnectivityError
    else:
        kind = default
    return kind(dialect.name, failure_type, message, operation=operation, query=query)
