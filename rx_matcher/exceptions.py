"""Custom exceptions for medication matching."""

class MatchingError(Exception):
    """Base class for errors raised by the matching layer."""
    pass

class InvalidInputError(MatchingError, TypeError):
    """Raised when a query name, catalog, or catalog entry has the wrong type."""
    pass

class CatalogLoadError(MatchingError):
    """Raised when a drug catalog file cannot be read or is malformed."""
    pass
