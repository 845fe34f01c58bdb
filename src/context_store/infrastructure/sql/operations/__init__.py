"""SQL statement builders."""

from .ddl import (
    ERROR_TABLE_COLUMNS,
    ERROR_TABLE_SUFFIX,
    build_create_destination,
    build_create_error_table,
    build_create_table,
    error_table_columns,
    error_table_name,
)
from .insert import InsertBuilder
from .retention import (
    build_delete_matching,
    build_purge_keep_latest,
    build_select_ordered,
)

__all__ = [
    "ERROR_TABLE_COLUMNS",
    "ERROR_TABLE_SUFFIX",
    "InsertBuilder",
    "build_create_destination",
    "build_create_error_table",
    "build_create_table",
    "build_delete_matching",
    "build_purge_keep_latest",
    "build_select_ordered",
    "error_table_columns",
    "error_table_name",
]
