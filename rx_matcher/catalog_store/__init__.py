"""Catalog database access for rx_matcher."""

from .db_interface import SQLInterface
from .exceptions import (
    CatalogQueryError,
    DatabaseConnectionError,
    InvalidQueryParametersError,
)
from .repository import CatalogRepository

__all__ = [
    "SQLInterface",
    "CatalogRepository",
    "DatabaseConnectionError",
    "CatalogQueryError",
    "InvalidQueryParametersError",
]
