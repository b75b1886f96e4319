"""Reads the drug catalog from the pharmacy database."""

import re
from typing import List, Tuple

from ..config import DEFAULT_CATALOG_SCHEMA, DEFAULT_CATALOG_TABLE
from ..matching.models import CatalogEntry
from ..secure_logging import get_secure_logger
from .db_interface import SQLInterface
from .exceptions import CatalogQueryError, InvalidQueryParametersError

logger = get_secure_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
CATALOG_COLUMNS = ("id", "name", "strength", "generic_name")


class CatalogRepository:
    """Loads every row of the drug table as CatalogEntry objects."""

    def __init__(self, sql_interface: SQLInterface, table: str = DEFAULT_CATALOG_TABLE,
                 schema: str = DEFAULT_CATALOG_SCHEMA):
        for label, identifier in (("table", table), ("schema", schema)):
            if not isinstance(identifier, str) or not _IDENTIFIER.match(identifier):
                raise InvalidQueryParametersError(f"Invalid {label} name: {identifier!r}")
        self.sql_interface = sql_interface
        self.table = table
        self.schema = schema

    def build_catalog_query(self) -> Tuple[str, Tuple]:
        # Identifiers cannot be bound as parameters; they are validated in __init__
        columns = ", ".join(f"[{column}]" for column in CATALOG_COLUMNS)
        sql = f"SELECT {columns} FROM [{self.schema}].[{self.table}] ORDER BY [id]"
        return sql, ()

    def fetch_all(self) -> List[CatalogEntry]:
        sql, params = self.build_catalog_query()
        if not self.sql_interface.execute_query(sql, params):
            raise CatalogQueryError(f"Catalog query failed for {self.schema}.{self.table}")

        rows = self.sql_interface.fetch_results()
        if rows is None:
            raise CatalogQueryError(f"Error fetching catalog rows from {self.schema}.{self.table}")

        entries = []
        for row in rows:
            entry = CatalogEntry.from_record(row)
            if not isinstance(entry.name, str) or not entry.name.strip():
                logger.warning(f"Skipping catalog row with id {entry.id}: missing name.")
                continue
            entries.append(entry)

        logger.info(f"Loaded {len(entries)} catalog entries from {self.schema}.{self.table}.")
        return entries
