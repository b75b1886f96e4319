"""Metadata generation utilities for rx_matcher."""
from datetime import datetime
from typing import Any, Dict, List

from .config import (
    APP_VERSION,
    METADATA_PARAM_KEYS,
    STATUS_AUTO_MATCHED,
    STATUS_BATCH_ALL_MATCHED,
    STATUS_BATCH_EMPTY,
    STATUS_BATCH_NONE_MATCHED,
    STATUS_BATCH_PARTIAL,
    STATUS_SUCCESS,
    STATUS_SUCCESS_NO_MATCH,
    STATUS_SUGGESTED,
    STATUS_UNMATCHED,
)


def create_base_metadata(
    run_start_time: datetime,
    execution_duration_ms: int,
    args: Any,
    display_name: str,
    results_count: int
) -> Dict[str, Any]:
    """Create base metadata dictionary for all actions."""
    return {
        'run_timestamp_utc': run_start_time.isoformat(),
        'action': args.action,
        'display_name': display_name,
        'tool_version': APP_VERSION,
        'execution_duration_ms': execution_duration_ms,
        'record_count': results_count,
    }


def extract_run_parameters(args: Any) -> Dict[str, str]:
    """Extract relevant parameters from args for metadata."""
    return {
        k: str(v) for k, v in vars(args).items()
        if k in METADATA_PARAM_KEYS and v is not None and v is not False
    }


def extract_thresholds(args: Any) -> Dict[str, Any]:
    return {
        k: getattr(args, k) for k in ('auto_threshold', 'suggest_threshold', 'max_candidates')
        if getattr(args, k, None) is not None
    }


def count_statuses(results: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Count match outcomes.

    Match records carry a ``status`` key; reconciled medications carry
    ``found`` instead, where any catalog hit counts as matched.
    """
    counts = {STATUS_AUTO_MATCHED: 0, STATUS_SUGGESTED: 0, STATUS_UNMATCHED: 0}
    for record in results:
        status = record.get('status')
        if status is None and 'found' in record:
            if record['found']:
                status = STATUS_AUTO_MATCHED
            elif record.get('similarMatches'):
                status = STATUS_SUGGESTED
            else:
                status = STATUS_UNMATCHED
        if status in counts:
            counts[status] += 1
    return counts


def determine_run_status(args: Any, results: List[Dict[str, Any]]) -> str:
    """Determine the overall status of a run from its match outcomes."""
    if args.action == 'similarity':
        return STATUS_SUCCESS

    counts = count_statuses(results)
    matched = counts[STATUS_AUTO_MATCHED]

    if args.action == 'match':
        return STATUS_SUCCESS if matched else STATUS_SUCCESS_NO_MATCH

    if not results:
        return STATUS_BATCH_EMPTY
    if matched == len(results):
        return STATUS_BATCH_ALL_MATCHED
    if matched > 0:
        return STATUS_BATCH_PARTIAL
    return STATUS_BATCH_NONE_MATCHED


def create_metadata_dict(
    run_start_time: datetime,
    execution_duration_ms: int,
    args: Any,
    display_name: str,
    results: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Create complete metadata dictionary for a run."""
    results = results or []
    metadata_dict = create_base_metadata(
        run_start_time, execution_duration_ms, args, display_name, len(results)
    )
    metadata_dict['parameters'] = extract_run_parameters(args)
    thresholds = extract_thresholds(args)
    if thresholds:
        metadata_dict['thresholds'] = thresholds
    if args.action != 'similarity':
        metadata_dict['match_summary'] = count_statuses(results)
    metadata_dict['status'] = determine_run_status(args, results)
    return metadata_dict
