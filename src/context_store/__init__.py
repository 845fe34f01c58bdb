"""
context-store - Relational storage backend for context-data ingestion.

Turns logical writes (create destination, create table, insert, upsert the
latest value, cap or expire history) into dialect-specific SQL executed over
pooled connections.
"""

from context_store.io.backend import SQLBackend

__version__ = "0.1.0"

__all__ = ["SQLBackend", "__version__"]
