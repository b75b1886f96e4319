"""SQL Server access for the drug catalog."""

import html
import os
import time
from typing import Any, Dict, List, Optional, Tuple

try:
    import pyodbc
except ImportError:
    # The package stays importable on machines without an ODBC driver manager
    pyodbc = None

from bs4 import BeautifulSoup

from ..config import DEFAULT_SQL_DRIVER
from ..secure_logging import get_secure_logger

logger = get_secure_logger(__name__)

_REQUIRED_SETTINGS = ("SQL_SERVER", "DATABASE", "USERNAME_SQL", "PASSWORD", "SQL_DRIVER")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _sqlstate(error: Exception) -> str:
    return error.args[0] if error.args else "unknown"


class SQLInterface:
    """
    Thin wrapper around one pyodbc connection to the pharmacy database.

    Settings come from the environment (usually a ``.env`` file):
    ``SQL_SERVER``, ``DATABASE``, ``USERNAME_SQL``, ``PASSWORD`` and
    optionally ``SQL_DRIVER``. Failures are reported through return values
    so callers decide how to surface them.
    """

    @staticmethod
    def _clean_field_value(value: Any) -> Any:
        """
        Normalise a text column read from the catalog.

        Drug tables maintained through web forms pick up HTML entities and
        stray tags. Markup is stripped by an HTML parser, so dosing text such as
        "<1 yr" survives; names and strengths are single-line, so tag
        boundaries become spaces and whitespace runs collapse. Non-text values
        pass through untouched.
        """
        if not isinstance(value, str):
            return value
        text = html.unescape(value)
        if "<" in text:
            text = BeautifulSoup(text, "html.parser").get_text(separator=" ")
        return " ".join(text.split())

    def __init__(self, debug: bool = False):
        self.server: Optional[str] = os.getenv("SQL_SERVER")
        self.database: Optional[str] = os.getenv("DATABASE")
        self.username_sql: Optional[str] = os.getenv("USERNAME_SQL")
        self.password: Optional[str] = os.getenv("PASSWORD")
        self.driver: str = os.getenv("SQL_DRIVER", DEFAULT_SQL_DRIVER)
        self.connection = None
        self.cursor = None
        self.debug = debug

    def __enter__(self) -> "SQLInterface":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_connection()
        return False

    def _connection_string(self) -> str:
        parts = {
            "DRIVER": self.driver,
            "SERVER": self.server,
            "DATABASE": self.database,
            "UID": self.username_sql,
            "PWD": self.password,
        }
        return "".join(f"{key}={value};" for key, value in parts.items())

    def connect(self) -> bool:
        """Open the connection and a cursor; True on success or when already connected."""
        if pyodbc is None:
            logger.error("pyodbc is not installed; the catalog database is unavailable.")
            return False
        if self.connection is not None:
            logger.warning("Already connected; reusing the open connection.")
            return True

        settings = (self.server, self.database, self.username_sql, self.password, self.driver)
        if not all(settings):
            logger.error(f"Missing database settings. Set {', '.join(_REQUIRED_SETTINGS)} in the environment or .env.")
            return False

        start = time.perf_counter()
        logger.debug(f"Connecting to catalog database on {self.server}")
        try:
            self.connection = pyodbc.connect(self._connection_string(), autocommit=False)
            self.cursor = self.connection.cursor()
        except pyodbc.Error as ex:
            # Driver messages can echo the connection string; only the SQLSTATE is logged
            state = _sqlstate(ex)
            self.connection = None
            self.cursor = None
            logger.log_authentication_event("DB_CONNECT", self.username_sql, success=False,
                                           details=f"SQLSTATE {state}")
            logger.error(f"Database connection failed: SQLSTATE {state}")
            logger.log_database_operation("CONNECT", success=False, duration_ms=_elapsed_ms(start))
            return False

        logger.log_authentication_event("DB_CONNECT", self.username_sql, success=True)
        logger.log_database_operation("CONNECT", success=True, duration_ms=_elapsed_ms(start))
        return True

    def execute_query(self, query: str, params: Tuple = ()) -> bool:
        """Run one statement with ``?`` placeholders; rolls back and returns False on error."""
        if self.connection is None or self.cursor is None:
            logger.error("Cannot execute query: not connected to the catalog database.")
            return False

        start = time.perf_counter()
        try:
            self.cursor.execute(query, params)
        except pyodbc.Error as ex:
            logger.log_sql_execution(query, params, success=False, duration_ms=_elapsed_ms(start))
            logger.error(f"SQL execution failed: SQLSTATE {_sqlstate(ex)}")
            self._rollback()
            return False

        logger.log_sql_execution(query, params, success=True, duration_ms=_elapsed_ms(start))
        return True

    def fetch_results(self) -> Optional[List[Dict[str, Any]]]:
        """
        Rows of the last statement as dicts keyed by column name, text cleaned.

        Returns an empty list when the statement produced no result set and
        None when fetching failed.
        """
        if self.cursor is None:
            logger.error("Cannot fetch results: no open cursor.")
            return None

        try:
            description = self.cursor.description
            if description is None:
                return []
            columns = [column[0] for column in description]
            start = time.perf_counter()
            rows = self.cursor.fetchall()
        except pyodbc.Error as ex:
            logger.error(f"Fetching results failed: SQLSTATE {_sqlstate(ex)}")
            return None

        logger.log_database_operation("FETCH", success=True, duration_ms=_elapsed_ms(start), row_count=len(rows))
        return [{column: self._clean_field_value(value) for column, value in zip(columns, row)} for row in rows]

    def _rollback(self) -> None:
        if self.connection is None:
            return
        try:
            self.connection.rollback()
            logger.info("Transaction rolled back after a failed statement.")
        except pyodbc.Error as ex:
            logger.critical(f"Rollback failed: SQLSTATE {_sqlstate(ex)}")

    @staticmethod
    def _close_quietly(resource: Any, label: str) -> None:
        try:
            resource.close()
        except pyodbc.Error as ex:
            logger.warning(f"Error closing {label}: SQLSTATE {_sqlstate(ex)}")

    def close_connection(self) -> None:
        """Close the cursor and connection if open; safe to call repeatedly."""
        if self.debug:
            logger.debug("Closing catalog database cursor and connection.")
        if self.cursor is not None:
            self._close_quietly(self.cursor, "cursor")
            self.cursor = None
        if self.connection is not None:
            self._close_quietly(self.connection, "connection")
            self.connection = None
            logger.info("Catalog database connection closed.")
