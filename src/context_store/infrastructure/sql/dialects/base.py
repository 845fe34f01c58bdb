"""
Dialect adapter contract shared by the concrete SQL dialects.

A dialect adapter owns every place where the supported databases differ:
how a destination is addressed in the connection URL, identifier quoting,
table qualification, DDL prefixes, the shape of the latest-value upsert and
how a statement timeout is recognised.
"""

from typing import TYPE_CHECKING, Any, List, Literal, Optional, Tuple
from urllib.parse import parse_qsl

from sqlalchemy.engine import URL

from ..core.identifier import qualify_table, quote_identifier

if TYPE_CHECKING:
    from context_store.config.settings import BackendSettings

DDLObject = Literal["destination", "table"]


class DialectAdapter:
    """Base SQL dialect implementation."""

    name = "generic"
    default_driver: Optional[str] = None
    default_port: Optional[int] = None
    # DBAPI error codes meaning "the statement ran out of time"
    timeout_codes: frozenset = frozenset()
    # Column type of the error-log timestamp; must keep microseconds
    timestamp_type = "TIMESTAMP"
    # Column addressing exactly one row of the error log
    row_identity = "rowid"

    def row_identity_column(self) -> Optional[Tuple[str, str]]:
        """(name, type) of the identity column to declare, or None for a system column."""
        return None

    def quote(self, identifier: str) -> str:
        """Quote an identifier using this dialect's quoting style."""
        return quote_identifier(identifier, dialect=self.name)

    def qualify(self, destination: str, table: str) -> str:
        """Reference ``table`` inside ``destination``."""
        return qualify_table(table, destination, dialect=self.name)

    def ddl_prefix(self, kind: DDLObject) -> str:
        """Return the idempotent CREATE prefix for a destination or a table."""
        if kind == "table":
            return "CREATE TABLE IF NOT EXISTS"
        raise ValueError(f"Unsupported DDL object: {kind}")

    def database_for(self, destination: str, default_database: str) -> Optional[str]:
        """Database name a pool for ``destination`` connects to."""
        return default_database or None

    def build_connection_url(
        self, settings: "BackendSettings", destination: str
    ) -> URL:
        """
        Build the SQLAlchemy URL used by the pool of ``destination``.

        Args:
            settings: Backend settings with host, credentials and options
            destination: Logical destination ("" addresses the server itself)

        Returns:
            SQLAlchemy URL object (render with ``hide_password=True`` for logs)
        """
        driver = settings.driver or self.default_driver
        drivername = f"{self.name}+{driver}" if driver else self.name
        query = dict(parse_qsl(settings.options)) if settings.options else {}
        return URL.create(
            drivername=drivername,
            username=settings.username or None,
            password=settings.password or None,
            host=settings.host,
            port=settings.port or self.default_port,
            database=self.database_for(destination, settings.default_database),
            query=query,
        )

    def timestamp_expr(self, expression: str, parse: bool) -> str:
        """Wrap ``expression`` so it compares as a timestamp."""
        return expression

    def build_upsert_latest(
        self,
        table_ref: str,
        columns: List[str],
        placeholders: List[str],
        unique_key: str,
        timestamp_key: str,
        parse_timestamps: bool = False,
    ) -> str:
        """Build an upsert keeping the newest row per unique key."""
        raise NotImplementedError

    def error_code(self, exc: BaseException) -> Any:
        """Return the DBAPI error code of ``exc`` (or of its ``orig``)."""
        orig = getattr(exc, "orig", None) or exc
        args = getattr(orig, "args", ())
        return args[0] if args else None

    def is_timeout(self, exc: BaseException) -> bool:
        """True when ``exc`` reports a statement timeout."""
        return self.error_code(exc) in self.timeout_codes
