"""
SQL module for centralized SQL generation.

This module provides reusable utilities for building SQL statements with
proper identifier quoting, destination qualification, bound parameters and
dialect-specific syntax.
"""

from .core.identifier import qualify_table, quote_identifier
from .core.parameters import (
    adapt_value,
    build_indexed_params,
    columns_to_records,
)
from .dialects import DialectAdapter, MySQLDialect, PostgreSQLDialect, get_dialect
from .operations.insert import InsertBuilder

__all__ = [
    "quote_identifier",
    "qualify_table",
    "build_indexed_params",
    "columns_to_records",
    "adapt_value",
    "DialectAdapter",
    "MySQLDialect",
    "PostgreSQLDialect",
    "get_dialect",
    "InsertBuilder",
]
