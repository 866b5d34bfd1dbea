"""Snowflake connection manager and query utilities."""

import logging
from dataclasses import dataclass

import snowflake.connector
from snowflake.connector import DictCursor

from pgcdc_quickstart.config import ConfigurationError, Settings, get_settings

logger = logging.getLogger(__name__)


class WarehouseError(Exception):
    """Raised when Snowflake rejects a statement or the connection fails."""

    def __init__(self, message: str, sql: str | None = None):
        self.sql = sql
        super().__init__(message)


@dataclass
class Query:
    """One named warehouse query and what a healthy result looks like."""
    section: str
    title: str
    sql: str
    expectation: str = ""


@dataclass
class QueryResult:
    query: Query
    rows: list[dict]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WarehouseClient:
    """Thin wrapper over a snowflake-connector-python connection.

    Rows are returned as dicts keyed by column name. Connector errors are
    re-raised as WarehouseError with the offending statement attached.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._conn = None

    def connect(self):
        if self._conn is not None:
            return self._conn
        s = self.settings
        if not s.has_snowflake_credentials:
            raise ConfigurationError("SNOWFLAKE_ACCOUNT and SNOWFLAKE_USER must be set")

        params = {"account": s.snowflake_account, "user": s.snowflake_user}
        if s.snowflake_password:
            params["password"] = s.snowflake_password
        if s.snowflake_authenticator:
            params["authenticator"] = s.snowflake_authenticator

        logger.info("Connecting to Snowflake account %s as %s", s.snowflake_account, s.snowflake_user)
        try:
            self._conn = snowflake.connector.connect(**params)
        except snowflake.connector.errors.Error as e:
            raise WarehouseError(f"could not connect to Snowflake: {e}") from e
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def use_context(self, schema: bool = True) -> None:
        """Switch to the quickstart role, database, warehouse and (quoted) schema."""
        s = self.settings
        self.execute(f"USE ROLE {s.snowflake_role}")
        self.execute(f"USE DATABASE {s.snowflake_database}")
        self.execute(f"USE WAREHOUSE {s.snowflake_warehouse}")
        if schema:
            self.execute(f'USE SCHEMA "{s.snowflake_schema}"')

    def execute(self, sql: str) -> int:
        """Run one statement, return the affected/returned row count."""
        cursor = self.connect().cursor()
        try:
            logger.debug("Executing: %s", sql)
            cursor.execute(sql)
            return cursor.rowcount or 0
        except snowflake.connector.errors.Error as e:
            raise WarehouseError(str(e), sql=sql) from e
        finally:
            cursor.close()

    def fetch_all(self, sql: str, params=()) -> list[dict]:
        cursor = self.connect().cursor(DictCursor)
        try:
            cursor.execute(sql, params or None)
            return [_lower_keys(row) for row in cursor.fetchall()]
        except snowflake.connector.errors.Error as e:
            raise WarehouseError(str(e), sql=sql) from e
        finally:
            cursor.close()

    def run_statements(self, statements) -> int:
        """Execute statements in order, stopping at the first failure."""
        executed = 0
        for statement in statements:
            self.execute(getattr(statement, "sql", statement))
            executed += 1
        return executed

    def run_queries(self, queries: list[Query]) -> list[QueryResult]:
        """Run every query, collecting failures instead of stopping."""
        results = []
        for query in queries:
            try:
                results.append(QueryResult(query, self.fetch_all(query.sql)))
            except WarehouseError as e:
                logger.warning("%s failed: %s", query.title, e)
                results.append(QueryResult(query, [], error=str(e)))
        return results


def _lower_keys(row: dict) -> dict:
    # unquoted aliases come back upper-cased
    return {k.lower(): v for k, v in row.items()}
