"""Utility functions for rx-matcher"""
import csv
import json
import logging
import os
from typing import List

from .exceptions import CatalogLoadError
from .matching.models import CatalogEntry


def _entries_from_records(records, source: str, logger: logging.Logger) -> List[CatalogEntry]:
    entries = []
    for row_num, record in enumerate(records, 1):
        if not isinstance(record, dict):
            logger.warning(f"Skipping catalog record {row_num} in '{source}': not an object.")
            continue
        entry = CatalogEntry.from_record(record)
        if not isinstance(entry.name, str) or not entry.name.strip():
            logger.warning(f"Missing or empty drug name in '{source}' at record {row_num}. Skipping.")
            continue
        entries.append(CatalogEntry(entry.id, entry.name.strip(), entry.strength, entry.generic_name))
    return entries


def read_catalog_from_csv(csv_file_path: str, logger: logging.Logger) -> List[CatalogEntry]:
    """
    Reads a drug catalog from a CSV export of the drug table.

    The CSV must have a header row with at least a ``name`` column; ``id``,
    ``strength`` and ``generic_name`` are read when present. Rows with an
    empty name are skipped with a warning. An ``id`` column that is absent is
    replaced by the row number.

    Args:
        csv_file_path (str): Path to the CSV file
        logger (logging.Logger): Logger for error reporting

    Returns:
        List[CatalogEntry]: The catalog in file order

    Raises:
        CatalogLoadError: If the file is missing, unreadable, or has no name column
    """
    if not os.path.exists(csv_file_path):
        logger.error(f"Catalog CSV file not found: {csv_file_path}")
        raise CatalogLoadError(f"Catalog CSV file not found: {csv_file_path}")

    try:
        with open(csv_file_path, mode='r', encoding='utf-8-sig', newline='') as infile:  # utf-8-sig for BOM
            reader = csv.DictReader(infile)
            if not reader.fieldnames:
                logger.error(f"Catalog CSV '{csv_file_path}' appears to be empty or improperly formatted.")
                raise CatalogLoadError(f"Catalog CSV '{csv_file_path}' is empty")

            if 'name' not in [f.strip().lower() for f in reader.fieldnames]:
                logger.error(f"Column 'name' not found in catalog CSV header. Available columns: {reader.fieldnames}")
                raise CatalogLoadError(f"Catalog CSV '{csv_file_path}' has no 'name' column")

            records = []
            for row_num, row in enumerate(reader, 1):
                record = {key.strip(): value for key, value in row.items() if key is not None}
                if 'id' not in [key.lower() for key in record]:
                    record['id'] = str(row_num)
                records.append(record)
    except csv.Error as e:
        logger.error(f"Error reading catalog CSV '{csv_file_path}': {e}")
        raise CatalogLoadError(f"Error reading catalog CSV '{csv_file_path}': {e}") from e
    except OSError as e:
        logger.error(f"IOError reading catalog CSV '{csv_file_path}': {e}")
        raise CatalogLoadError(f"IOError reading catalog CSV '{csv_file_path}': {e}") from e

    entries = _entries_from_records(records, csv_file_path, logger)
    logger.info(f"Loaded {len(entries)} catalog entries from '{csv_file_path}'.")
    return entries


def read_catalog_from_json(json_file_path: str, logger: logging.Logger) -> List[CatalogEntry]:
    """
    Reads a drug catalog from JSON: either a list of drug objects or an
    object with a ``drugs`` list.

    Raises:
        CatalogLoadError: If the file is missing, not valid JSON, or has an unexpected shape
    """
    if not os.path.exists(json_file_path):
        logger.error(f"Catalog JSON file not found: {json_file_path}")
        raise CatalogLoadError(f"Catalog JSON file not found: {json_file_path}")

    try:
        with open(json_file_path, mode='r', encoding='utf-8-sig') as infile:
            payload = json.load(infile)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in catalog file '{json_file_path}': {e}")
        raise CatalogLoadError(f"Invalid JSON in catalog file '{json_file_path}': {e}") from e
    except OSError as e:
        logger.error(f"IOError reading catalog JSON '{json_file_path}': {e}")
        raise CatalogLoadError(f"IOError reading catalog JSON '{json_file_path}': {e}") from e

    if isinstance(payload, dict):
        payload = payload.get('drugs')
    if not isinstance(payload, list):
        logger.error(f"Catalog JSON '{json_file_path}' must contain a list of drugs.")
        raise CatalogLoadError(f"Catalog JSON '{json_file_path}' must contain a list of drugs")

    entries = _entries_from_records(payload, json_file_path, logger)
    logger.info(f"Loaded {len(entries)} catalog entries from '{json_file_path}'.")
    return entries


def read_names_from_csv(csv_file_path: str, name_column: str, logger: logging.Logger) -> List[str]:
    """
    Reads medication names to match from a column of a CSV file.

    Missing files, malformed CSV and a missing column are logged and give an
    empty list; blank cells are skipped with a warning.

    Args:
        csv_file_path (str): Path to the CSV file
        name_column (str): Name of the column holding the medication names
        logger (logging.Logger): Logger for error reporting

    Returns:
        List[str]: Names in file order
    """
    names = []
    if not os.path.exists(csv_file_path):
        logger.error(f"CSV file not found: {csv_file_path}")
        return names

    try:
        with open(csv_file_path, mode='r', encoding='utf-8-sig', newline='') as infile:
            reader = csv.DictReader(infile)
            if not reader.fieldnames:
                logger.error(f"CSV file '{csv_file_path}' appears to be empty or improperly formatted.")
                return names

            if name_column not in reader.fieldnames:
                logger.error(f"Name column '{name_column}' not found in CSV header. Available columns: {reader.fieldnames}")
                return names

            for row_num, row in enumerate(reader, 1):
                value = row.get(name_column)
                if value and value.strip():
                    names.append(value.strip())
                else:
                    logger.warning(f"Missing or empty medication name in CSV file '{csv_file_path}' at row {row_num}.")
    except csv.Error as e:
        logger.error(f"Error reading CSV file '{csv_file_path}': {e}")
        return []
    except OSError as e:
        logger.error(f"IOError reading CSV file '{csv_file_path}': {e}")
        return []

    if not names:
        logger.warning(f"No medication names extracted from CSV file '{csv_file_path}' with column '{name_column}'.")
    else:
        logger.info(f"Successfully extracted {len(names)} medication names from '{csv_file_path}'.")

    return names
