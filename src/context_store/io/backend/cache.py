"""In-memory record of destinations and tables known to exist.

Presence of an entry means a create (or insert) against it succeeded in this
process. Absence means nothing: the cache is optimistic, entries are never
evicted and a table dropped outside this process stays "known" until restart.
"""

import threading
from typing import Dict, List


class SchemaObjectCache:
    """
    Thread-safe existence cache keyed by destination and (destination, table).

    Usage:
        cache = SchemaObjectCache()
        if not cache.has_table("sensors", "temp_readings"):
            ...  # run CREATE TABLE
            cache.add_table("sensors", "temp_readings")
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        # dict keys keep insertion order for deterministic sweeps
        self._tables: Dict[str, Dict[str, None]] = {}

    def has_destination(self, destination: str) -> bool:
        with self._lock:
            return destination in self._tables

    def add_destination(self, destination: str) -> None:
        with self._lock:
            self._tables.setdefault(destination, {})

    def has_table(self, destination: str, table: str) -> bool:
        with self._lock:
            return table in self._tables.get(destination, {})

    def add_table(self, destination: str, table: str) -> None:
        """Record ``table`` (and therefore ``destination``) as existing."""
        with self._lock:
            self._tables.setdefault(destination, {})[table] = None

    def destinations(self) -> List[str]:
        """Snapshot of the known destinations, safe to iterate while others write."""
        with self._lock:
            return list(self._tables)

    def tables(self, destination: str) -> List[str]:
        """Snapshot of the known tables of ``destination``."""
        with self._lock:
            return list(self._tables.get(destination, {}))

    def clear(self) -> None:
        """Forget everything. Only meant for tests."""
        with self._lock:
            self._tables.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(tables) for tables in self._tables.values())
