"""SQL dialect adapters and lookup by dialect name."""

from typing import Dict, Type

from .base import DialectAdapter
from .mysql import MySQLDialect
from .postgresql import PostgreSQLDialect

DIALECTS: Dict[str, Type[DialectAdapter]] = {
    MySQLDialect.name: MySQLDialect,
    PostgreSQLDialect.name: PostgreSQLDialect,
}


def get_dialect(name: str) -> DialectAdapter:
    """
    Return the adapter for a dialect name.

    Raises:
        ValueError: If the dialect is not supported
    """
    try:
        return DIALECTS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unsupported SQL dialect '{name}'. Supported: {sorted(DIALECTS)}"
        ) from None


__all__ = [
    "DIALECTS",
    "DialectAdapter",
    "MySQLDialect",
    "PostgreSQLDialect",
    "get_dialect",
]
