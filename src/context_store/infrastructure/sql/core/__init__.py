"""Core SQL utilities package."""

from .identifier import qualify_table, quote_identifier
from .parameters import (
    adapt_value,
    build_indexed_params,
    columns_to_records,
)

__all__ = [
    "quote_identifier",
    "qualify_table",
    "build_indexed_params",
    "columns_to_records",
    "adapt_value",
]
