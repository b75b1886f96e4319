"""Custom exceptions for the catalog database layer."""

class DatabaseConnectionError(Exception):
    """Raised when unable to connect to the catalog database."""
    pass

class CatalogQueryError(Exception):
    """Raised when the catalog query fails to execute or fetch."""
    pass

class InvalidQueryParametersError(Exception):
    """Raised when an invalid table or schema name is provided."""
    pass
