"""
Relational storage backend for context data.

This module provides the SQL backend façade together with its pooled
connection handling, existence cache, transactional dual write, error log
and retention components.
"""

from .cache import SchemaObjectCache
from .core import SQLBackend
from .error_log import ErrorLogRecorder
from .errors import (
    BackendRuntimeError,
    BadContextData,
    ConfigurationError,
    ConnectivityError,
    ContextStoreError,
    PersistenceError,
)
from .models import ErrorRecord, RetentionPolicy, WriteResult
from .pool import ConnectionPoolManager
from .retention import RetentionEnforcer
from .transactional import TransactionalWriter

__all__ = [
    "BackendRuntimeError",
    "BadContextData",
    "ConfigurationError",
    "ConnectivityError",
    "ConnectionPoolManager",
    "ContextStoreError",
    "ErrorLogRecorder",
    "ErrorRecord",
    "PersistenceError",
    "RetentionEnforcer",
    "RetentionPolicy",
    "SQLBackend",
    "SchemaObjectCache",
    "TransactionalWriter",
    "WriteResult",
]
