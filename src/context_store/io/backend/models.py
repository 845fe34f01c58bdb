from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

DEFAULT_TIMESTAMP_COLUMN = "recvTime"


@dataclass
class WriteResult:
    """Outcome of an append + upsert transaction."""

    destination: str
    table: str
    rows_inserted: int
    rows_upserted: int
    duration_ms: float


@dataclass
class ErrorRecord:
    """One row of a destination's error-log table."""

    error: str
    query: Optional[str]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class RetentionPolicy:
    """Row-count and/or age limit applied to one table."""

    max_records: Optional[int] = None
    max_age_seconds: Optional[int] = None
    timestamp_column: str = DEFAULT_TIMESTAMP_COLUMN

    def __post_init__(self) -> None:
        if self.max_records is None and self.max_age_seconds is None:
            raise ValueError("RetentionPolicy needs max_records or max_age_seconds")
        if self.max_records is not None and self.max_records < 0:
            raise ValueError("max_records must be >= 0")
        if self.max_age_seconds is not None and self.max_age_seconds < 0:
            raise ValueError("max_age_seconds must be >= 0")
