"""
Unit tests for backend error kinds and statement-failure classification.
"""

import pytest
from sqlalchemy import exc as sa_exc

from context_store.infrastructure.sql.dialects import MySQLDialect
from context_store.io.backend.errors import (
    BackendRuntimeError,
    BadContextData,
    ConfigurationError,
    ConnectivityError,
    PersistenceError,
    classify_statement_error,
    describe_failure,
)


class DuplicateEntry(Exception):
    pass


@pytest.mark.unit
class TestErrorKinds:
    def test_runtime_errors_are_not_persistable(self):
        assert ConfigurationError.persistable is False
        assert ConnectivityError.persistable is False
        assert issubclass(ConnectivityError, BackendRuntimeError)

    def test_statement_errors_are_persistable(self):
        assert PersistenceError.persistable is True
        assert BadContextData.persistable is True

    def test_str_and_to_dict(self):
        error = BadContextData(
            "mysql", "DuplicateEntry", "dup key", operation="data insertion", query="INSERT"
        )

        assert str(error) == "MYSQL data insertion error (DuplicateEntry): dup key"
        assert error.to_dict() == {
            "error_type": "BadContextData",
            "dialect": "mysql",
            "operation": "data insertion",
            "failure_type": "DuplicateEntry",
            "message": "dup key",
            "query": "INSERT",
        }


@pytest.mark.unit
class TestClassifyStatementError:
    def test_describe_failure_unwraps_dbapi_error(self):
        error = sa_exc.IntegrityError("INSERT", {}, DuplicateEntry("dup key"))

        assert describe_failure(error) == ("DuplicateEntry", "dup key")
        assert describe_failure(ValueError("bad")) == ("ValueError", "bad")

    def test_plain_sql_failure_uses_default_kind(self):
        error = sa_exc.IntegrityError("INSERT", {}, DuplicateEntry("dup key"))

        result = classify_statement_error(MySQLDialect(), error, "data insertion", query="INSERT")

        assert isinstance(result, BadContextData)
        assert result.failure_type == "DuplicateEntry"
        assert result.query == "INSERT"
        assert result.dialect == "mysql"

    def test_default_kind_overridable(self):
        error = sa_exc.ProgrammingError("CREATE", {}, DuplicateEntry("denied"))

        result = classify_statement_error(
            MySQLDialect(), error, "table creation", default=PersistenceError
        )

        assert isinstance(result, PersistenceError)

    def test_timeout_is_persistence_error(self):
        error = sa_exc.OperationalError("INSERT", {}, Exception(1205, "Lock wait timeout"))

        result = classify_statement_error(MySQLDialect(), error, "data upsert")

        assert isinstance(result, PersistenceError)

    def test_lost_connection_is_connectivity_error(self):
        error = sa_exc.OperationalError(
            "INSERT", {}, Exception(2013, "Lost connection"), connection_invalidated=True
        )

        result = classify_statement_error(MySQLDialect(), error, "data upsert")

        assert isinstance(result, ConnectivityError)

    def test_typed_error_passes_through(self):
        original = ConnectivityError("mysql", "TimeoutError", "exhausted")

        assert classify_statement_error(MySQLDialect(), original, "data upsert") is original
