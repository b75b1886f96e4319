"""
Secure logging utilities for prescription data.

Medication names read off a prescription are patient data: together with a
timestamp they reveal what a person is being treated for. This module wraps a
standard logger so that production logs carry audit-friendly summaries
(lengths, counts, outcomes, scores) instead of the raw values.
"""

import logging
import re
from typing import Any, Optional

# Credentials: keep the key, drop the value
_CREDENTIAL_PATTERNS = [
    re.compile(r'(?i)(password)[\'"]?\s*[:=]\s*[\'"]?[^\s\'";]+'),
    re.compile(r'(?i)(pwd)[\'"]?\s*[:=]\s*[\'"]?[^\s\'";]+'),
    re.compile(r'(?i)(secret)[\'"]?\s*[:=]\s*[\'"]?[^\s\'";]+'),
    re.compile(r'(?i)(token)[\'"]?\s*[:=]\s*[\'"]?[^\s\'";]+'),
    re.compile(r'(?i)(api[_-]?key)[\'"]?\s*[:=]\s*[\'"]?[^\s\'";]+'),
]

# Prescription and birth dates, masked in production only
_DATE_PATTERNS = [
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{1,2}\.\d{1,2}\.\d{4}\b"),
]


def _timing(duration_ms: Optional[float], separator: str = " (", suffix: str = ")") -> str:
    return f"{separator}{duration_ms:.2f}ms{suffix}" if duration_ms is not None else ""


class SecureLogger:
    """
    Logging wrapper that sanitizes messages before they reach the handlers.

    In production mode credentials are redacted, dates are masked and drug
    names are reduced to their length. Development mode keeps short previews
    so mismatches can still be debugged.
    """

    def __init__(self, logger: logging.Logger, production_mode: bool = True):
        self.logger = logger
        self.production_mode = production_mode

    def _sanitize_message(self, message: str) -> str:
        for pattern in _CREDENTIAL_PATTERNS:
            message = pattern.sub(r"\1=***REDACTED***", message)
        if self.production_mode:
            for pattern in _DATE_PATTERNS:
                message = pattern.sub("***DATE***", message)
        return message

    def mask_value(self, value: Optional[str]) -> str:
        """
        Represent a free-text value (e.g. an extracted drug name) safely.

        Production mode only reveals the length; development mode keeps the
        first and last two characters of anything longer than four.
        """
        if value is None:
            return "<none>"
        if self.production_mode:
            return f"<text[{len(value)}]>"
        return value if len(value) <= 4 else f"{value[:2]}...{value[-2:]}"

    def _describe_params(self, params: Any) -> str:
        """Summarize SQL parameters: types in production, masked values in development."""
        if params is None:
            return "None"
        if isinstance(params, dict):
            return f"<dict with {len(params)} keys>"
        if not isinstance(params, (tuple, list)):
            return f"<{type(params).__name__}>"

        if self.production_mode:
            items = [f"param_{i}=<{type(param).__name__}>" for i, param in enumerate(params)]
        else:
            items = [self.mask_value(param) if isinstance(param, str) else str(param) for param in params]
        return "[" + ", ".join(items) + "]"

    def _describe_sql(self, sql: str) -> str:
        tokens = (sql or "").split()
        if not tokens:
            return "<empty query>"

        verb = tokens[0].upper()
        if self.production_mode:
            return f"<{verb} query, {len(tokens)} tokens>"
        flat = " ".join(tokens)
        if len(flat) > 100:
            flat = f"{flat[:50]}...{flat[-20:]}"
        return f"{verb}: {flat}"

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._sanitize_message(message), **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **kwargs)

    def log_database_operation(self, operation: str, success: bool = True,
                               duration_ms: Optional[float] = None, row_count: Optional[int] = None) -> None:
        """Audit line for a catalog database operation (connect, fetch)."""
        outcome = "SUCCESS" if success else "FAILED"
        timing = _timing(duration_ms, separator=", ", suffix="")
        rows = f", {row_count} rows" if row_count is not None else ""
        self.info(f"DB_AUDIT: {operation} {outcome}{timing}{rows}")

    def log_sql_execution(self, sql: str, params: Any = None, success: bool = True,
                          duration_ms: Optional[float] = None) -> None:
        """Debug line for one statement; parameter values never appear in production."""
        outcome = "SUCCESS" if success else "FAILED"
        self.debug(
            f"SQL_EXEC: {self._describe_sql(sql)} | PARAMS: {self._describe_params(params)} | "
            f"{outcome}{_timing(duration_ms)}"
        )

    def log_medication_match(
        self,
        query_name: str,
        catalog_size: int,
        outcome: str,
        best_score: Optional[float] = None,
        candidate_count: int = 0,
        duration_ms: Optional[float] = None,
    ) -> None:
        """
        Log the outcome of one medication-name match.

        Args:
            query_name: The extracted name (masked before logging)
            catalog_size: Number of catalog entries scored
            outcome: auto_matched, suggested or unmatched
            best_score: Score of the top candidate, if any
            candidate_count: Number of candidates returned
            duration_ms: Match duration in milliseconds
        """
        best = f", best={best_score:.3f}" if best_score is not None else ""
        self.info(
            f"MED_MATCH: query={self.mask_value(query_name)} against {catalog_size} entries "
            f"-> {outcome}, {candidate_count} candidates{best}{_timing(duration_ms)}"
        )

    def log_authentication_event(self, event_type: str, username: Optional[str] = None,
                                 success: bool = True, details: Optional[str] = None) -> None:
        """Audit line for a database login; the username is reduced to a few characters."""
        outcome = "SUCCESS" if success else "FAILED"
        user = ""
        if username:
            user = f" user={username[:2]}***{username[-1:]}" if len(username) > 4 else " user=***"
        extra = f" | {details}" if details else ""
        self.info(f"AUTH: {event_type} {outcome}{user}{extra}")


def get_secure_logger(name: str, production_mode: bool = True) -> SecureLogger:
    """Wrap ``logging.getLogger(name)`` in a SecureLogger."""
    return SecureLogger(logging.getLogger(name), production_mode=production_mode)
