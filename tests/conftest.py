"""Shared fixtures for the context store test suite.

Behaviour tests run the PostgreSQL statement shapes against SQLite: every
destination is an in-memory database ATTACHed under the destination name, so
``"sensors"."temp_readings"`` resolves the same way a schema-qualified
PostgreSQL table would.
"""

from __future__ import annotations

from typing import Callable, Iterator
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from context_store.config.settings import BackendSettings
from context_store.infrastructure.sql.dialects import PostgreSQLDialect
from context_store.io.backend import SQLBackend
from context_store.io.backend.cache import SchemaObjectCache
from context_store.io.backend.pool import ConnectionPoolManager

DESTINATION = "sensors"
TABLE = "temp_readings"
LATEST_TABLE = "temp_readings_latest"
HISTORY_SPEC = '("recvTime" TEXT, "entityId" TEXT, "temp" TEXT)'
LATEST_SPEC = '("recvTime" TEXT, "entityId" TEXT PRIMARY KEY, "temp" TEXT)'


class AttachedSQLiteDialect(PostgreSQLDialect):
    """PostgreSQL statements addressing rows by SQLite's rowid instead of ctid."""

    row_identity = "rowid"


def make_backend(settings: BackendSettings, engine_factory, cache=None) -> SQLBackend:
    pool = ConnectionPoolManager(settings, AttachedSQLiteDialect(), engine_factory)
    return SQLBackend(settings, pool_manager=pool, cache=cache)


def make_settings(**overrides) -> BackendSettings:
    values = {
        "dialect": "postgresql",
        "default_database": "main",
        "host": "localhost",
        "username": "ctx",
        "password": "secret",
        "max_pool_size": 2,
        "pool_timeout": 1.0,
        "persist_errors": True,
        "max_latest_errors": 3,
    }
    values.update(overrides)
    return BackendSettings(_env_file=None, **values)


@pytest.fixture
def settings() -> BackendSettings:
    """PostgreSQL-flavoured settings without touching the environment."""
    return make_settings()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    """Single shared in-memory SQLite connection with the destination attached."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _attach_destination(dbapi_connection, connection_record):
        dbapi_connection.execute(f"ATTACH DATABASE ':memory:' AS {DESTINATION}")

    yield engine
    engine.dispose()


@pytest.fixture
def engine_factory(sqlite_engine) -> Callable[..., Engine]:
    """Engine factory handing every destination the shared SQLite engine."""

    def factory(url, **options):
        return sqlite_engine

    return factory


@pytest.fixture
def cache() -> SchemaObjectCache:
    return SchemaObjectCache()


@pytest.fixture
def backend(settings, engine_factory, cache) -> Iterator[SQLBackend]:
    backend = make_backend(settings, engine_factory, cache)
    yield backend
    backend.close()


@pytest.fixture
def sensor_tables(backend) -> SQLBackend:
    """Backend with the history and latest-value tables created."""
    backend.create_table(DESTINATION, TABLE, HISTORY_SPEC)
    backend.create_table(DESTINATION, LATEST_TABLE, LATEST_SPEC)
    return backend


def fetch_rows(engine: Engine, sql: str) -> list:
    """Run a query on the shared engine and return plain tuples."""
    with engine.connect() as conn:
        return [tuple(row) for row in conn.execute(text(sql))]


def mock_connection() -> MagicMock:
    """Connection double that passes the pool's validity check."""
    conn = MagicMock()
    conn.closed = False
    conn.invalidated = False
    conn.execute.return_value.rowcount = 0
    conn.__enter__.return_value = conn
    conn.__exit__.return_value = False
    return conn


def mock_engine(connection: MagicMock | None = None) -> MagicMock:
    engine = MagicMock()
    engine.connect.return_value = connection if connection is not None else mock_connection()
    return engine
