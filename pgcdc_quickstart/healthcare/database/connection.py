"""Database connection manager for the CDC source (PostgreSQL, or SQLite locally)."""

import logging
import sqlite3
from datetime import date, datetime, time
from decimal import Decimal

import psycopg2
import psycopg2.extras

from pgcdc_quickstart.config import get_settings

logger = logging.getLogger(__name__)

POSTGRES = "postgresql"
SQLITE = "sqlite"

CENTS = Decimal("0.01")


class SourceConnection:
    """A DB-API connection that takes `?` placeholders on either backend.

    Rows come back as mappings (`sqlite3.Row` or psycopg2's RealDictRow), so
    `row["column"]` works everywhere. Used as a context manager it commits on
    success, rolls back on error, and always closes.
    """

    def __init__(self, raw, dialect: str):
        self.raw = raw
        self.dialect = dialect

    def execute(self, sql: str, params=()):
        cursor = self.raw.cursor()
        if self.dialect == POSTGRES:
            if params:
                cursor.execute(sql.replace("?", "%s"), tuple(params))
            else:
                cursor.execute(sql)
        else:
            cursor.execute(sql, tuple(_adapt(p) for p in params))
        return cursor

    def executemany(self, sql: str, seq_of_params) -> None:
        cursor = self.raw.cursor()
        if self.dialect == POSTGRES:
            cursor.executemany(sql.replace("?", "%s"), [tuple(p) for p in seq_of_params])
        else:
            cursor.executemany(sql, [tuple(_adapt(v) for v in p) for p in seq_of_params])

    def fetch_one(self, sql: str, params=()):
        return self.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params=()) -> list:
        return self.execute(sql, params).fetchall()

    def scalar(self, sql: str, params=()):
        row = self.execute(sql, params).fetchone()
        if row is None:
            return None
        return list(dict(row).values())[0]

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def close(self) -> None:
        self.raw.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.close()
        return False


class SourceDatabase:
    """Connection factory for the source database described by a URL."""

    def __init__(self, url: str | None = None, schema: str | None = None):
        settings = get_settings()
        self.url = url or settings.source_database_url
        self.schema = schema or settings.source_schema

        if self.url.startswith(("postgresql://", "postgres://")):
            self.dialect = POSTGRES
        elif self.url.startswith("sqlite:///"):
            self.dialect = SQLITE
            self.path = self.url[len("sqlite:///"):]
        else:
            raise ValueError(f"Unsupported source database URL: {self.url}")

    @property
    def is_postgres(self) -> bool:
        return self.dialect == POSTGRES

    def connect(self) -> SourceConnection:
        """Open a new connection with mapping rows enabled."""
        if self.is_postgres:
            raw = psycopg2.connect(
                self.url,
                cursor_factory=psycopg2.extras.RealDictCursor,
                options=f"-c search_path={self.schema}",
            )
        else:
            raw = sqlite3.connect(self.path)
            raw.row_factory = sqlite3.Row
            raw.execute("PRAGMA foreign_keys = ON")
        return SourceConnection(raw, self.dialect)

    def fetch_all(self, sql: str, params=()) -> list[dict]:
        """Run a read-only query on a short-lived connection."""
        with self.connect() as conn:
            return [dict(row) for row in conn.fetch_all(sql, params)]

    def describe(self) -> str:
        """URL safe for logs (password stripped)."""
        if self.is_postgres and "@" in self.url:
            scheme, rest = self.url.split("://", 1)
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return self.url


def get_connection(url: str | None = None) -> SourceConnection:
    """Get a source database connection with mapping rows enabled."""
    return SourceDatabase(url).connect()


# Value coercion. SQLite hands back ISO strings and floats, psycopg2 hands
# back date/time/Decimal objects.

def _adapt(value):
    """Turn Python values into something sqlite3 can bind."""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def as_date(value) -> date | None:
    if value is None or type(value) is date:
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value)[:10])


def as_time(value) -> time | None:
    if value is None or isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def as_datetime(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    return datetime.fromisoformat(str(value))


def as_decimal(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENTS)
