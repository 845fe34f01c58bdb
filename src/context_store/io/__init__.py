"""Storage I/O: the SQL backend and its components."""
