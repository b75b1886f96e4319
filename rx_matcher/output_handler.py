"""Output handling utilities for formatting and writing results."""
import io
import logging
import os
from typing import Any, Dict, List, Optional

from .config import DEFAULT_FILE_ENCODING, FILE_EXTENSION_MAP, VALID_OUTPUT_FORMATS
from .output_formatter import OutputFormatter

logger = logging.getLogger(__name__)


def determine_output_format(user_format: Optional[str], output_file_path: Optional[str]) -> str:
    """Determines the effective output format based on user input and file extension."""
    if user_format:
        return user_format

    if output_file_path:
        _, ext = os.path.splitext(output_file_path)
        ext = ext.lower()

        if ext in FILE_EXTENSION_MAP:
            return FILE_EXTENSION_MAP[ext]
        if ext:
            logger.warning(
                f"Output file extension '{ext}' for '{output_file_path}' is not recognized. "
                f"Defaulting to 'json' format."
            )
        else:
            logger.warning(f"No file extension for '{output_file_path}'. Defaulting to 'json' format.")
        return 'json'

    return 'stdout'


def format_metadata_summary(metadata_dict: Optional[Dict[str, Any]]) -> str:
    """Format metadata dictionary as comment lines."""
    if not metadata_dict:
        return ''
    return '\n'.join(f"# {k}: {v}" for k, v in metadata_dict.items())


def render_output(
    results: List[Dict[str, Any]],
    effective_format: str,
    metadata_dict: Optional[Dict[str, Any]] = None,
    output_formatter: Optional[OutputFormatter] = None,
) -> str:
    """Render results in the requested format; CSV, TSV and stdout tables get metadata comment lines."""
    if effective_format not in VALID_OUTPUT_FORMATS:
        raise ValueError(f"Unknown output format: {effective_format}")

    formatter = output_formatter or OutputFormatter()
    metadata_summary = format_metadata_summary(metadata_dict)
    header = metadata_summary + '\n' if metadata_summary else ''

    if effective_format == 'json':
        return formatter.format_as_json(results, metadata_dict) + '\n'
    if effective_format == 'csv':
        return header + formatter.format_as_csv(results)
    if effective_format == 'tsv':
        return header + formatter.format_as_tsv(results)
    if effective_format == 'txt':
        return formatter.format_as_txt(results)

    buf = io.StringIO()
    formatter.format_as_console_table(results, stream=buf)
    return header + buf.getvalue()


def handle_output(
    results: List[Dict[str, Any]],
    output_file_path: Optional[str],
    display_name: str,
    effective_format: str,
    metadata_dict: Optional[Dict[str, Any]] = None,
) -> None:
    """Write rendered results to the output file, or to stdout when no file is given."""
    rendered = render_output(results, effective_format, metadata_dict)

    if output_file_path:
        output_dir = os.path.dirname(output_file_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        with open(output_file_path, 'w', encoding=DEFAULT_FILE_ENCODING, newline='') as f:
            f.write(rendered)
        logger.info(f"{display_name}: wrote {len(results)} records to '{output_file_path}' ({effective_format}).")
    else:
        print(rendered, end='')
