"""
Per-destination connection pools.

Each destination gets its own SQLAlchemy engine backed by a bounded
QueuePool. Engines are created lazily on first use, handed-out connections
are validated, and an engine whose connection comes back invalid is disposed
and replaced wholesale.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import create_engine
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import QueuePool

from context_store.config.settings import BackendSettings
from context_store.infrastructure.sql.dialects.base import DialectAdapter
from context_store.io.backend.errors import (
    ConfigurationError,
    ConnectivityError,
    describe_failure,
)
from context_store.utils.logging import get_logger

logger = get_logger(__name__)

EngineFactory = Callable[..., Engine]


class ConnectionPoolManager:
    """Owns one bounded connection pool per destination."""

    def __init__(
        self,
        settings: BackendSettings,
        dialect: DialectAdapter,
        engine_factory: EngineFactory = create_engine,
    ):
        """
        Args:
            settings: Connection and pool settings
            dialect: Dialect deciding how destinations are addressed
            engine_factory: Callable building an engine from (url, **options);
                tests inject their own
        """
        self.settings = settings
        self.dialect = dialect
        self._engine_factory = engine_factory
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()
        self._logger = logger.bind(dialect=dialect.name)

    def _engine_options(self) -> Dict[str, Any]:
        return {
            "pool_size": self.settings.max_pool_size,
            "max_overflow": 0,
            "pool_timeout": self.settings.pool_timeout,
            "pool_pre_ping": True,
        }

    def _create_engine(self, destination: str) -> Engine:
        try:
            url = self.dialect.build_connection_url(self.settings, destination)
            engine = self._engine_factory(url, **self._engine_options())
        except Exception as e:
            failure_type, message = describe_failure(e)
            self._logger.error(
                "backend.pool.create_failed",
                destination=destination,
                failure_type=failure_type,
                error=message,
            )
            raise ConfigurationError(
                self.dialect.name, failure_type, message, operation="connection pool creation"
            ) from e

        self._logger.info(
            "backend.pool.created",
            destination=destination,
            url=url.render_as_string(hide_password=True),
            max_pool_size=self.settings.max_pool_size,
        )
        return engine

    def _get_engine(self, destination: str) -> Engine:
        with self._lock:
            engine = self._engines.get(destination)
            if engine is None:
                engine = self._create_engine(destination)
                self._engines[destination] = engine
            return engine

    def _replace_engine(self, destination: str, stale: Engine) -> Engine:
        """Swap ``stale`` for a fresh engine unless another caller already did."""
        with self._lock:
            current = self._engines.get(destination)
            if current is stale or current is None:
                self._dispose_quietly(destination, stale)
                current = self._create_engine(destination)
                self._engines[destination] = current
            return current

    def _connect(self, engine: Engine, destination: str) -> Connection:
        try:
            return engine.connect()
        except sa_exc.TimeoutError as e:
            self._logger.error(
                "backend.pool.exhausted",
                destination=destination,
                pool_timeout=self.settings.pool_timeout,
            )
            raise ConnectivityError(
                self.dialect.name, "TimeoutError", str(e), operation="connection"
            ) from e
        except Exception as e:
            failure_type, message = describe_failure(e)
            self._logger.error(
                "backend.pool.connect_failed",
                destination=destination,
                failure_type=failure_type,
                error=message,
            )
            raise ConnectivityError(
                self.dialect.name, failure_type, message, operation="connection"
            ) from e

    @staticmethod
    def _is_valid(connection: Connection) -> bool:
        return not connection.closed and not connection.invalidated

    def _close_quietly(self, connection: Connection, destination: str) -> None:
        try:
            connection.close()
        except Exception as e:
            self._logger.warning(
                "backend.pool.close_invalid_failed", destination=destination, error=str(e)
            )

    def _dispose_quietly(self, destination: str, engine: Engine) -> bool:
        try:
            engine.dispose()
            return True
        except Exception as e:
            self._logger.error(
                "backend.pool.dispose_failed", destination=destination, error=str(e)
            )
            return False

    def acquire(self, destination: str) -> Connection:
        """
        Hand out a validated connection for ``destination``.

        The caller owns the connection and must close it (use it as a context
        manager); closing returns it to the pool.

        Args:
            destination: Destination name, "" for a server-level connection

        Returns:
            SQLAlchemy Connection

        Raises:
            ConfigurationError: If the pool cannot be built
            ConnectivityError: If no connection can be obtained
        """
        engine = self._get_engine(destination)
        connection = self._connect(engine, destination)

        if not self._is_valid(connection):
            self._logger.warning("backend.pool.invalid_connection", destination=destination)
            self._close_quietly(connection, destination)
            engine = self._replace_engine(destination, engine)
            connection = self._connect(engine, destination)

        self._logger.debug(
            "backend.pool.status", destination=destination, **self.pool_status(destination)
        )
        return connection

    def is_pool_created(self, destination: str) -> bool:
        with self._lock:
            return destination in self._engines

    def pool_status(self, destination: str) -> Dict[str, int]:
        """Max / checked out / idle connections of a destination's pool."""
        with self._lock:
            engine = self._engines.get(destination)
        status = {"max": self.settings.max_pool_size, "checked_out": 0, "idle": 0}
        if engine is not None and isinstance(engine.pool, QueuePool):
            status["checked_out"] = engine.pool.checkedout()
            status["idle"] = engine.pool.checkedin()
        return status

    def destinations(self) -> List[str]:
        with self._lock:
            return list(self._engines)

    def active_connections(self) -> int:
        """Connections currently checked out across every pool."""
        return sum(self.pool_status(d)["checked_out"] for d in self.destinations())

    def max_connections(self) -> int:
        """Upper bound of connections across every pool."""
        return self.settings.max_pool_size * len(self.destinations())

    def close(self, destination: Optional[str] = None) -> None:
        """
        Dispose pools: every pool, or only the one of ``destination``.

        A pool that fails to close is logged and skipped so the rest are still
        released.
        """
        with self._lock:
            if destination is None:
                engines = list(self._engines.items())
                self._engines.clear()
            elif destination in self._engines:
                engines = [(destination, self._engines.pop(destination))]
            else:
                engines = []

        closed = 0
        for name, engine in engines:
            if self._dispose_quietly(name, engine):
                closed += 1
                self._logger.debug("backend.pool.closed", destination=name)

        self._logger.info("backend.pool.close_completed", closed=closed, total=len(engines))
