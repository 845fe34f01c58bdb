"""Infrastructure layer: SQL generation shared by the storage backend."""
