"""
Unit tests for the MySQL and PostgreSQL dialect adapters.
"""

import pytest
from sqlalchemy import exc as sa_exc

from context_store.infrastructure.sql import InsertBuilder
from context_store.infrastructure.sql.dialects import (
    MySQLDialect,
    PostgreSQLDialect,
    get_dialect,
)
from tests.conftest import make_settings


class PgCanceled(Exception):
    pgcode = "57014"


class PgUniqueViolation(Exception):
    pgcode = "23505"


@pytest.mark.unit
class TestDialectLookup:
    def test_lookup_is_case_insensitive(self):
        assert isinstance(get_dialect("MySQL"), MySQLDialect)
        assert isinstance(get_dialect("postgresql"), PostgreSQLDialect)

    def test_unknown_dialect_rejected(self):
        with pytest.raises(ValueError, match="Unsupported SQL dialect"):
            get_dialect("oracle")


@pytest.mark.unit
class TestConnectionURL:
    def test_mysql_destination_is_the_database(self):
        url = MySQLDialect().build_connection_url(make_settings(dialect="mysql"), "sensors")

        assert url.drivername == "mysql+pymysql"
        assert url.database == "sensors"
        assert url.port == 3306
        assert url.username == "ctx"

    def test_mysql_server_level_url_has_no_database(self):
        url = MySQLDialect().build_connection_url(make_settings(dialect="mysql"), "")

        assert url.database is None

    def test_postgresql_always_uses_default_database(self):
        settings = make_settings(default_database="context")
        url = PostgreSQLDialect().build_connection_url(settings, "sensors")

        assert url.drivername == "postgresql+psycopg2"
        assert url.database == "context"
        assert url.port == 5432

    def test_options_become_query_parameters(self):
        settings = make_settings(options="sslmode=require&connect_timeout=5", port=6543)
        url = PostgreSQLDialect().build_connection_url(settings, "sensors")

        assert dict(url.query) == {"sslmode": "require", "connect_timeout": "5"}
        assert url.port == 6543

    def test_explicit_driver_wins(self):
        settings = make_settings(dialect="mysql", driver="mysqldb")
        url = MySQLDialect().build_connection_url(settings, "sensors")

        assert url.drivername == "mysql+mysqldb"

    def test_password_hidden_when_rendered(self):
        url = PostgreSQLDialect().build_connection_url(make_settings(), "sensors")

        assert "secret" not in url.render_as_string(hide_password=True)


@pytest.mark.unit
class TestDDLPrefixes:
    def test_mysql_creates_databases(self):
        assert MySQLDialect().ddl_prefix("destination") == "CREATE DATABASE IF NOT EXISTS"

    def test_postgresql_creates_schemas(self):
        assert PostgreSQLDialect().ddl_prefix("destination") == "CREATE SCHEMA IF NOT EXISTS"

    def test_table_prefix_shared(self):
        for dialect in (MySQLDialect(), PostgreSQLDialect()):
            assert dialect.ddl_prefix("table") == "CREATE TABLE IF NOT EXISTS"

    def test_unknown_object_rejected(self):
        with pytest.raises(ValueError):
            MySQLDialect().ddl_prefix("index")

    def test_table_qualification(self):
        assert MySQLDialect().qualify("sensors", "t") == "`t`"
        assert PostgreSQLDialect().qualify("sensors", "t") == '"sensors"."t"'


@pytest.mark.unit
class TestLatestUpsert:
    COLUMNS = ["entityId", "recvTime", "temp"]

    def test_postgresql_conflict_guarded_by_timestamp(self):
        sql, param_map = InsertBuilder(PostgreSQLDialect()).upsert_latest(
            "sensors", "temp_readings_latest", self.COLUMNS, "entityId", "recvTime"
        )

        assert sql == (
            'INSERT INTO "sensors"."temp_readings_latest" AS latest '
            '("entityId", "recvTime", "temp") VALUES (:col_0, :col_1, :col_2) '
            'ON CONFLICT ("entityId") DO UPDATE SET '
            '"recvTime" = EXCLUDED."recvTime", "temp" = EXCLUDED."temp" '
            'WHERE latest."recvTime" <= EXCLUDED."recvTime"'
        )
        assert param_map == {"entityId": "col_0", "recvTime": "col_1", "temp": "col_2"}

    def test_postgresql_parses_text_timestamps(self):
        sql, _ = InsertBuilder(PostgreSQLDialect()).upsert_latest(
            "sensors", "t_latest", self.COLUMNS, "entityId", "recvTime", parse_timestamps=True
        )

        assert sql.endswith(
            'WHERE to_timestamp(latest."recvTime", :timestamp_format) '
            '<= to_timestamp(EXCLUDED."recvTime", :timestamp_format)'
        )

    def test_mysql_assigns_timestamp_last(self):
        """Test the guard of every column still compares the stored timestamp."""
        sql, _ = InsertBuilder(MySQLDialect()).upsert_latest(
            "sensors", "t_latest", self.COLUMNS, "entityId", "recvTime"
        )

        guard = "IF(`recvTime` <= VALUES(`recvTime`)"
        assert sql.startswith(
            "INSERT INTO `t_latest` (`entityId`, `recvTime`, `temp`) "
            "VALUES (:col_0, :col_1, :col_2) ON DUPLICATE KEY UPDATE "
        )
        assert f"`temp` = {guard}, VALUES(`temp`), `temp`)" in sql
        assert sql.endswith(f"`recvTime` = {guard}, VALUES(`recvTime`), `recvTime`)")
        assert "`entityId` = IF" not in sql

    def test_mysql_parses_text_timestamps(self):
        sql, _ = InsertBuilder(MySQLDialect()).upsert_latest(
            "sensors", "t_latest", self.COLUMNS, "entityId", "recvTime", parse_timestamps=True
        )

        assert (
            "STR_TO_DATE(`recvTime`, :timestamp_format) <= "
            "STR_TO_DATE(VALUES(`recvTime`), :timestamp_format)"
        ) in sql

    def test_missing_key_column_rejected(self):
        with pytest.raises(ValueError, match="recvTime"):
            InsertBuilder(MySQLDialect()).upsert_latest(
                "sensors", "t_latest", ["entityId", "temp"], "entityId", "recvTime"
            )


@pytest.mark.unit
class TestTimeoutDetection:
    def test_mysql_lock_wait_timeout(self):
        error = sa_exc.OperationalError("UPDATE t", {}, Exception(1205, "Lock wait timeout"))

        assert MySQLDialect().is_timeout(error) is True

    def test_mysql_other_error(self):
        error = sa_exc.IntegrityError("INSERT", {}, Exception(1062, "Duplicate entry"))

        assert MySQLDialect().is_timeout(error) is False

    def test_postgresql_query_canceled(self):
        error = sa_exc.OperationalError("SELECT", {}, PgCanceled("canceling statement"))

        assert PostgreSQLDialect().is_timeout(error) is True

    def test_postgresql_other_error(self):
        error = sa_exc.IntegrityError("INSERT", {}, PgUniqueViolation("duplicate key"))

        assert PostgreSQLDialect().is_timeout(error) is False
