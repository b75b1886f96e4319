import csv
import io
import json
import logging
import sys
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from tabulate import tabulate

logger = logging.getLogger(__name__)


class OutputFormatter:
    """Formats match results (lists of JSON-style dictionaries) for display or saving."""

    @staticmethod
    def _datetime_serializer(obj: Any) -> str:
        """
        Custom serializer for converting datetime.datetime and datetime.date
        objects into ISO 8601 string format for JSON compatibility.
        """
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    @staticmethod
    def _summarize_item(item: Any) -> str:
        if isinstance(item, dict) and "name" in item:
            label = str(item["name"])
            if item.get("strength"):
                label += f" {item['strength']}"
            if isinstance(item.get("similarity"), (int, float)):
                label += f" ({item['similarity']:.3f})"
            return label
        return str(item)

    @classmethod
    def flatten_record(cls, record: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
        """
        Flatten a nested result record into a single tabular row.

        Nested objects become ``parent_child`` columns; lists (candidate
        lists) collapse into one ``"; "``-separated cell.
        """
        row: Dict[str, Any] = {}
        for key, value in record.items():
            column = f"{prefix}{key}"
            if isinstance(value, dict):
                row.update(cls.flatten_record(value, prefix=f"{column}_"))
            elif isinstance(value, list):
                row[column] = "; ".join(cls._summarize_item(item) for item in value)
            else:
                row[column] = value
        return row

    @classmethod
    def flatten_records(cls, data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        rows = [cls.flatten_record(record) for record in data]
        # Records can differ in shape (e.g. matched vs unmatched); align columns
        columns: List[str] = []
        for row in rows:
            for column in row:
                if column not in columns:
                    columns.append(column)
        return [{column: row.get(column) for column in columns} for row in rows]

    @staticmethod
    def format_as_json(data_payload: List[Any], metadata: Optional[Dict[str, Any]] = None,
                       indent: Optional[int] = 4) -> str:
        """
        Formats the data payload and metadata into a JSON string.

        The output has two top-level keys, ``metadata`` and ``data``; the
        metadata key is omitted when no metadata is given.
        """
        output: Dict[str, Any] = {}
        if metadata is not None:
            output["metadata"] = metadata
        output["data"] = data_payload
        return json.dumps(output, indent=indent, default=OutputFormatter._datetime_serializer,
                          ensure_ascii=False)

    @classmethod
    def _format_delimited(cls, data: List[Dict[str, Any]], delimiter: str) -> str:
        if not data:
            return ""
        rows = cls.flatten_records(data)
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=list(rows[0].keys()), delimiter=delimiter)
        writer.writeheader()
        writer.writerows(rows)
        return output.getvalue()

    @classmethod
    def format_as_csv(cls, data: List[Dict[str, Any]]) -> str:
        """Formats the data into a CSV string."""
        return cls._format_delimited(data, ",")

    @classmethod
    def format_as_tsv(cls, data: List[Dict[str, Any]]) -> str:
        """Formats the data into a TSV string."""
        return cls._format_delimited(data, "\t")

    @classmethod
    def format_as_txt(cls, data: List[Dict[str, Any]]) -> str:
        """Formats each record as ``column: value`` lines, records separated by a blank line."""
        if not data:
            return ""
        blocks = []
        for row in cls.flatten_records(data):
            lines = [f"{column}: {'' if value is None else value}" for column, value in row.items()]
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n"

    @classmethod
    def format_as_console_table(cls, data: List[Dict[str, Any]], stream=None) -> None:
        """Formats data as a grid table and writes it to the given stream (stdout by default)."""
        stream = stream if stream is not None else sys.stdout
        if not data:
            logger.info("No data to display.")
            print("No data to display.", file=stream)
            return

        rows = cls.flatten_records(data)
        headers = list(rows[0].keys())
        table = tabulate([list(row.values()) for row in rows], headers=headers, tablefmt="grid",
                         floatfmt=".3f")
        print(table, file=stream)
