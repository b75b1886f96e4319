"""Configuration constants and settings for rx_matcher."""
import os
from typing import Dict

# Application constants
APP_VERSION = "0.1.0"
DEFAULT_NAME_COLUMN = "name"
DEFAULT_CATALOG_TABLE = "drugs"
DEFAULT_CATALOG_SCHEMA = "dbo"

# Matching thresholds (empirically chosen, tunable)
DEFAULT_AUTO_MATCH_THRESHOLD = 0.63
DEFAULT_SUGGESTION_THRESHOLD = 0.40
DEFAULT_MAX_CANDIDATES = 5
DEFAULT_NGRAM_SIZE = 2

# Combined similarity weights
SIMILARITY_WEIGHTS: Dict[str, float] = {
    "jaro_winkler": 0.5,
    "levenshtein": 0.25,
    "ngram": 0.25,
}

# Environment overrides for the thresholds
ENV_AUTO_MATCH_THRESHOLD = "RX_AUTO_MATCH_THRESHOLD"
ENV_SUGGESTION_THRESHOLD = "RX_SUGGESTION_THRESHOLD"
ENV_MAX_CANDIDATES = "RX_MAX_CANDIDATES"
ENV_LOG_FILE = "RX_MATCHER_LOGFILE"

# Logging configuration
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
LOGGER_NAME = "rx_matcher.main"

# File handling
DEFAULT_FILE_ENCODING = 'utf-8'
VALID_OUTPUT_FORMATS = ['json', 'csv', 'tsv', 'txt', 'stdout']
FILE_EXTENSION_MAP = {
    '.json': 'json',
    '.csv': 'csv',
    '.tsv': 'tsv',
    '.txt': 'txt'
}

# Database configuration defaults
DEFAULT_SQL_DRIVER = "{ODBC Driver 18 for SQL Server}"

# Metadata parameter keys (for consistency)
METADATA_PARAM_KEYS = [
    'query_name', 'catalog_csv', 'catalog_json', 'from_db', 'table', 'schema',
    'input_csv', 'name_column', 'extraction_file',
]

# Match status labels
STATUS_AUTO_MATCHED = "auto_matched"
STATUS_SUGGESTED = "suggested"
STATUS_UNMATCHED = "unmatched"

# Run status constants
STATUS_SUCCESS = "success"
STATUS_SUCCESS_NO_MATCH = "success_no_match"
STATUS_BATCH_ALL_MATCHED = "batch_all_auto_matched"
STATUS_BATCH_PARTIAL = "batch_partial_match"
STATUS_BATCH_NONE_MATCHED = "batch_no_auto_matches"
STATUS_BATCH_EMPTY = "batch_input_empty"


def get_env_or_default(key: str, default: str = "") -> str:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_float_env(key: str, default: float) -> float:
    """Read a float from the environment, falling back to default when unset or malformed."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_int_env(key: str, default: int) -> int:
    """Read an int from the environment, falling back to default when unset or malformed."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default
