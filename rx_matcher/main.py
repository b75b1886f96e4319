"""Main module for the rx_matcher package."""
import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .catalog_store import (
    CatalogQueryError,
    CatalogRepository,
    DatabaseConnectionError,
    InvalidQueryParametersError,
    SQLInterface,
)
from .config import (
    DEFAULT_AUTO_MATCH_THRESHOLD,
    DEFAULT_CATALOG_SCHEMA,
    DEFAULT_CATALOG_TABLE,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_SUGGESTION_THRESHOLD,
    ENV_AUTO_MATCH_THRESHOLD,
    ENV_LOG_FILE,
    ENV_MAX_CANDIDATES,
    ENV_SUGGESTION_THRESHOLD,
    LOG_FORMAT,
    LOGGER_NAME,
    VALID_OUTPUT_FORMATS,
    get_float_env,
    get_int_env,
)
from .exceptions import CatalogLoadError, MatchingError
from .matching import (
    CatalogEntry,
    FuzzyMatcher,
    MedicationReconciler,
    jaro_winkler,
    levenshtein_distance,
    levenshtein_similarity,
    ngram_similarity,
    parse_extraction_response,
    similarity,
)
from .metadata import create_metadata_dict
from .output_handler import determine_output_format, handle_output
from .secure_logging import SecureLogger, get_secure_logger
from .utils import read_catalog_from_csv, read_catalog_from_json, read_names_from_csv

load_dotenv()

HandlerResult = Tuple[List[Dict[str, Any]], str]

# Arguments that carry medication names read off a prescription
NAME_ARGUMENTS = ('query_name', 'name_a', 'name_b')


def _add_output_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--format', '-f',
        type=str,
        choices=VALID_OUTPUT_FORMATS,
        default=None,
        help='Output format: json, csv, tsv, txt, or stdout (pretty table to console). Inferred from -o extension if not set.'
    )
    parser.add_argument(
        '--output', '-o', type=str, metavar='FILE_PATH',
        help='Optional path to save results as a JSON, CSV, TSV, or TXT file.'
    )


def setup_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Matches medication names read from prescriptions against a drug catalog.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        '--debug', '-v',
        action='store_true',
        help='Enable verbose debug output for troubleshooting.'
    )
    subparsers = parser.add_subparsers(
        dest='action', help='The main action to perform. Use one of the subcommands below.', required=True, metavar='ACTION'
    )

    # Shared catalog source and threshold options
    catalog_parent = argparse.ArgumentParser(add_help=False)
    source = catalog_parent.add_mutually_exclusive_group(required=True)
    source.add_argument('--catalog-csv', type=str, metavar='CSV_FILE_PATH',
        help="Drug catalog as CSV with a 'name' column (optional: id, strength, generic_name).")
    source.add_argument('--catalog-json', type=str, metavar='JSON_FILE_PATH',
        help="Drug catalog as a JSON list of drugs or an object with a 'drugs' list.")
    source.add_argument('--from-db', action='store_true',
        help="Read the drug catalog from SQL Server (connection settings from .env).")
    catalog_parent.add_argument('--table', type=str, default=DEFAULT_CATALOG_TABLE,
        help=f"Drug table name when using --from-db (default: {DEFAULT_CATALOG_TABLE}).")
    catalog_parent.add_argument('--schema', type=str, default=DEFAULT_CATALOG_SCHEMA,
        help=f"Database schema when using --from-db (default: {DEFAULT_CATALOG_SCHEMA}).")
    catalog_parent.add_argument(
        '--auto-threshold', type=float, metavar='0.0-1.0',
        default=get_float_env(ENV_AUTO_MATCH_THRESHOLD, DEFAULT_AUTO_MATCH_THRESHOLD),
        help=f'Score at or above which the best candidate is applied automatically '
             f'(default: {DEFAULT_AUTO_MATCH_THRESHOLD}, env {ENV_AUTO_MATCH_THRESHOLD}).'
    )
    catalog_parent.add_argument(
        '--suggest-threshold', type=float, metavar='0.0-1.0',
        default=get_float_env(ENV_SUGGESTION_THRESHOLD, DEFAULT_SUGGESTION_THRESHOLD),
        help=f'Minimum score for a catalog entry to be listed as a candidate '
             f'(default: {DEFAULT_SUGGESTION_THRESHOLD}, env {ENV_SUGGESTION_THRESHOLD}).'
    )
    catalog_parent.add_argument(
        '--max-candidates', type=int, metavar='N',
        default=get_int_env(ENV_MAX_CANDIDATES, DEFAULT_MAX_CANDIDATES),
        help=f'Maximum number of candidates returned per name (default: {DEFAULT_MAX_CANDIDATES}, env {ENV_MAX_CANDIDATES}).'
    )

    # --- Sub-command: match ---
    parser_match = subparsers.add_parser('match', parents=[catalog_parent],
        help='Match a single medication name against the catalog.')
    parser_match.add_argument('query_name', metavar='NAME',
        help='Medication name as extracted from the prescription.')
    _add_output_arguments(parser_match)

    # --- Sub-command: batch-match ---
    parser_batch = subparsers.add_parser('batch-match', parents=[catalog_parent],
        help='Match every medication name from a CSV column against the catalog.')
    parser_batch.add_argument('--input-csv', '-ic', type=str, required=True, metavar='CSV_FILE_PATH',
        help='CSV file containing the medication names to match.')
    parser_batch.add_argument('--name-column', '-nc', type=str, default='name', metavar='COLUMN_NAME',
        help="Column holding the medication names (default: 'name').")
    _add_output_arguments(parser_batch)

    # --- Sub-command: reconcile ---
    parser_reconcile = subparsers.add_parser('reconcile', parents=[catalog_parent],
        help='Reconcile a prescription extraction (text-extraction service answer) with the catalog.')
    parser_reconcile.add_argument('--extraction-file', '-e', type=str, required=True, metavar='FILE_PATH',
        help='File holding the raw extraction answer: {"medications": [{"name", "strength", "directions"}]}.')
    _add_output_arguments(parser_reconcile)

    # --- Sub-command: similarity ---
    parser_similarity = subparsers.add_parser('similarity',
        help='Show every similarity metric for a pair of names.')
    parser_similarity.add_argument('name_a', metavar='NAME_A')
    parser_similarity.add_argument('name_b', metavar='NAME_B')
    _add_output_arguments(parser_similarity)

    return parser


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    # Results go to stdout; keep logs on stderr so piped output stays clean
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def describe_args(args: argparse.Namespace, secure_logger: SecureLogger) -> Dict[str, Any]:
    """Parsed arguments as a dict for the debug log, with medication names masked."""
    described = dict(vars(args))
    for key in NAME_ARGUMENTS:
        if key in described:
            described[key] = secure_logger.mask_value(described[key])
    return described


def build_matcher(args: argparse.Namespace, parser: argparse.ArgumentParser) -> FuzzyMatcher:
    try:
        return FuzzyMatcher(
            auto_match_threshold=args.auto_threshold,
            suggestion_threshold=args.suggest_threshold,
            max_candidates=args.max_candidates,
        )
    except ValueError as e:
        parser.error(str(e))


def load_catalog(args: argparse.Namespace, logger: logging.Logger) -> List[CatalogEntry]:
    """Load the catalog from the source selected on the command line."""
    if args.catalog_csv:
        return read_catalog_from_csv(args.catalog_csv, logger)
    if args.catalog_json:
        return read_catalog_from_json(args.catalog_json, logger)

    with SQLInterface(debug=args.debug) as db:
        if not db.connection:
            raise DatabaseConnectionError("Database connection failed.")
        return CatalogRepository(db, table=args.table, schema=args.schema).fetch_all()


def _match_record(query_name: str, matcher: FuzzyMatcher, catalog: List[CatalogEntry]) -> Dict[str, Any]:
    result = matcher.match_medication(query_name, catalog)
    return {'query': query_name, **result.to_dict()}


def handle_match(args: argparse.Namespace, matcher: FuzzyMatcher, catalog: List[CatalogEntry],
                 logger: logging.Logger) -> HandlerResult:
    """Handle the match action."""
    display_name = "Medication Match"
    logger.info(f"Attempting to execute: {display_name} against {len(catalog)} catalog entries")
    record = _match_record(args.query_name, matcher, catalog)
    if record['is_auto_matched']:
        logger.info("Match found with confidence at or above the auto-match threshold.")
    elif record['candidates']:
        logger.info(f"No confident match; {len(record['candidates'])} suggestions for review.")
    else:
        logger.info("No catalog entry resembles the given name.")
    return [record], display_name


def handle_batch_match(args: argparse.Namespace, matcher: FuzzyMatcher, catalog: List[CatalogEntry],
                       logger: logging.Logger) -> HandlerResult:
    """Handle the batch-match action."""
    display_name = f"Batch Medication Match from {os.path.basename(args.input_csv)}"
    logger.info(f"Attempting to execute: {display_name}")

    names = read_names_from_csv(args.input_csv, args.name_column, logger)
    if not names:
        logger.error(f"No medication names found in '{args.input_csv}' or error reading file.")
        return [], display_name

    results = [_match_record(name, matcher, catalog) for name in names]
    matched = sum(1 for record in results if record['is_auto_matched'])
    logger.info(f"Batch summary: {matched} of {len(results)} names auto-matched.")
    return results, display_name


def handle_reconcile(args: argparse.Namespace, matcher: FuzzyMatcher, catalog: List[CatalogEntry],
                     logger: logging.Logger) -> HandlerResult:
    """Handle the reconcile action."""
    display_name = f"Prescription Reconciliation for {os.path.basename(args.extraction_file)}"
    logger.info(f"Attempting to execute: {display_name}")

    try:
        with open(args.extraction_file, encoding='utf-8-sig') as f:
            raw_text = f.read()
    except OSError as e:
        raise MatchingError(f"Cannot read extraction file '{args.extraction_file}': {e}") from e

    medications = parse_extraction_response(raw_text)
    if not medications:
        logger.warning("No medications found in the extraction answer.")
        return [], display_name

    reconciler = MedicationReconciler(matcher)
    reconciled = reconciler.reconcile_all(medications, catalog)
    return [item.to_dict() for item in reconciled], display_name


def handle_similarity(args: argparse.Namespace, logger: logging.Logger) -> HandlerResult:
    """Handle the similarity action."""
    display_name = "Name Similarity"
    logger.debug("Computing similarity metrics for a name pair.")
    record = {
        'name_a': args.name_a,
        'name_b': args.name_b,
        'levenshtein_distance': levenshtein_distance(args.name_a, args.name_b),
        'levenshtein_similarity': levenshtein_similarity(args.name_a, args.name_b),
        'jaro_winkler': jaro_winkler(args.name_a, args.name_b),
        'ngram_similarity': ngram_similarity(args.name_a, args.name_b),
        'similarity': similarity(args.name_a, args.name_b),
    }
    return [record], display_name


CATALOG_HANDLERS = {
    'match': handle_match,
    'batch-match': handle_batch_match,
    'reconcile': handle_reconcile,
}


def main(argv: Optional[List[str]] = None) -> None:
    parser = setup_arg_parser()
    args = parser.parse_args(argv)

    setup_logging(args.debug, os.getenv(ENV_LOG_FILE))
    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(f"Parsed arguments: {describe_args(args, get_secure_logger(LOGGER_NAME))}")

    run_start_time = datetime.now(timezone.utc)
    try:
        if args.action == 'similarity':
            results, display_name = handle_similarity(args, logger)
        else:
            matcher = build_matcher(args, parser)
            catalog = load_catalog(args, logger)
            if not catalog:
                logger.warning("Catalog is empty; every name will be reported as unmatched.")
            results, display_name = CATALOG_HANDLERS[args.action](args, matcher, catalog, logger)
    except (CatalogLoadError, DatabaseConnectionError, CatalogQueryError, InvalidQueryParametersError) as e:
        logger.error(f"Catalog error: {e}", exc_info=args.debug)
        sys.exit(1)
    except MatchingError as e:
        logger.error(f"Matching error: {e}", exc_info=args.debug)
        sys.exit(1)

    execution_duration_ms = int((datetime.now(timezone.utc) - run_start_time).total_seconds() * 1000)

    effective_format = determine_output_format(args.format, args.output)
    metadata_dict = create_metadata_dict(run_start_time, execution_duration_ms, args, display_name, results)
    handle_output(results, args.output, display_name, effective_format, metadata_dict)

    logger.info(f"--- {display_name} finished ---")


if __name__ == "__main__":
    main()
