"""
Employee extraction from the HR SQL Server database.

One connection per call, opened and closed around a single read-only query.
A failed connect or query aborts the pass: a half-loaded employee
population must never be reconciled.
"""

import logging
from typing import Any, Callable

import pyodbc
from opentelemetry import trace

from sync_utils.retry import retry_database_operation
from sync_utils.sql_safety import quote_schema_table
from sync_utils.tracing import add_span_attributes, trace_operation

from ..config import HrisDatabaseSettings
from ..errors import HrisConnectionError, HrisQueryError, SyncDisabledError
from ..models import SourceRecord

logger = logging.getLogger(__name__)

EXCLUDED_GRADE = "Non Staff"


def build_connection_string(settings: HrisDatabaseSettings) -> str:
    """Build the ODBC connection string for the HR database."""
    return (
        f"DRIVER={{{settings.driver}}};"
        f"SERVER={settings.server},{settings.port};"
        f"DATABASE={settings.database};"
        f"UID={settings.username};"
        f"PWD={settings.password};"
        f"Encrypt={'yes' if settings.encrypt else 'no'};"
        f"TrustServerCertificate={'yes' if settings.trust_server_certificate else 'no'};"
    )


class HrisExtractor:
    """
    Reads the staff population from the HR employee table.

    Args:
        settings: HR database settings for this pass
        connect: Callable(connection_string, timeout=...) returning a DB-API
            connection; defaults to ``pyodbc.connect``
        connect_retries: Attempts after the first for transient connect errors
    """

    def __init__(
        self,
        settings: HrisDatabaseSettings,
        connect: Callable[..., Any] = pyodbc.connect,
        connect_retries: int = 2,
    ):
        self.settings = settings
        self._connect = connect
        self.connect_retries = connect_retries

    def build_query(self) -> str:
        table = quote_schema_table(self.settings.schema, self.settings.table)
        return f"SELECT * FROM {table} WHERE grade_interval <> ?"

    def _open_connection(self) -> Any:
        @retry_database_operation(max_retries=self.connect_retries, base_delay=1.0)
        def connect():
            return self._connect(
                build_connection_string(self.settings),
                timeout=self.settings.login_timeout,
            )

        try:
            conn = connect()
        except Exception as e:
            raise HrisConnectionError(
                f"Cannot connect to HR database {self.settings.server}/{self.settings.database}: {e}"
            ) from e

        # Per-statement deadline; 0 would mean wait forever
        conn.timeout = self.settings.query_timeout
        return conn

    def fetch_employees(self) -> list[SourceRecord]:
        """
        Fetch every staff employee.

        Returns:
            One SourceRecord per row, in query order

        Raises:
            SyncDisabledError: HRIS sync is switched off
            HrisConnectionError: The database could not be reached
            HrisQueryError: The query failed or timed out
        """
        if not self.settings.enabled:
            raise SyncDisabledError("HRIS sync is disabled in settings")

        try:
            query = self.build_query()
        except ValueError as e:
            raise HrisQueryError(f"Invalid HR table reference: {e}") from e

        with trace_operation(
            "hris_fetch_employees",
            kind=trace.SpanKind.CLIENT,
            db_host=self.settings.server,
            db_name=self.settings.database,
        ):
            conn = self._open_connection()
            try:
                cursor = conn.cursor()
                try:
                    cursor.execute(query, EXCLUDED_GRADE)
                    columns = [column[0] for column in cursor.description]
                    rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
                finally:
                    cursor.close()
            except pyodbc.Error as e:
                raise HrisQueryError(f"HR employee query failed: {e}") from e
            finally:
                try:
                    conn.close()
                except pyodbc.Error as e:
                    logger.warning(f"Error closing HR database connection: {e}")

            add_span_attributes(row_count=len(rows))

        logger.info(f"Fetched {len(rows)} staff records from HRIS")
        return [SourceRecord.from_row(row) for row in rows]
