"""
Unit tests for the maintenance CLI.
"""

from unittest.mock import patch

import pytest

from context_store.cli.__main__ import main
from context_store.io.backend import PersistenceError


@pytest.fixture
def backend():
    with patch("context_store.cli.__main__.get_settings"), patch(
        "context_store.cli.__main__.SQLBackend"
    ) as backend_cls:
        yield backend_cls.return_value


@pytest.mark.unit
class TestMain:
    def test_cap(self, backend, capsys):
        backend.cap_records.return_value = 2

        exit_code = main(
            ["cap", "--destination", "sensors", "--table", "temp_readings", "--max-records", "3"]
        )

        assert exit_code == 0
        backend.cap_records.assert_called_once_with("sensors", "temp_readings", 3)
        backend.close.assert_called_once()
        assert "Deleted 2 rows from sensors.temp_readings" in capsys.readouterr().out

    def test_purge_errors(self, backend, capsys):
        backend.purge_error_table.return_value = 4

        assert main(["purge-errors", "--destination", "sensors"]) == 0
        assert "Purged 4 error rows" in capsys.readouterr().out

    def test_create_error_table(self, backend):
        assert main(["create-error-table", "--destination", "sensors"]) == 0

        backend.create_error_table.assert_called_once_with("sensors")

    def test_backend_error_exits_non_zero(self, backend, capsys):
        backend.purge_error_table.side_effect = PersistenceError(
            "mysql", "OperationalError", "denied", operation="error table purge"
        )

        assert main(["purge-errors", "--destination", "sensors"]) == 1
        backend.close.assert_called_once()
        assert "denied" in capsys.readouterr().err

    def test_negative_cap_rejected(self, backend):
        with pytest.raises(SystemExit) as exc_info:
            main(["cap", "--destination", "s", "--table", "t", "--max-records", "-1"])

        assert exc_info.value.code == 2

    def test_command_required(self, backend):
        with pytest.raises(SystemExit):
            main([])
