"""Unit tests for rx_matcher.main module (CLI entry point)."""

import io
import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from rx_matcher import main as main_module
from rx_matcher.main import build_matcher, describe_args, main, setup_arg_parser, setup_logging
from rx_matcher.secure_logging import get_secure_logger


@pytest.fixture(autouse=True)
def restore_root_logging():
    """main() reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def names_csv(temp_dir):
    path = temp_dir / "names.csv"
    path.write_text("rx_id,drug\n1,Augmentn\n2,Ferro\n3,Xyzzyx\n", encoding="utf-8")
    return path


@pytest.fixture
def extraction_file(temp_dir):
    path = temp_dir / "extraction.txt"
    path.write_text(
        '```json\n{"medications": ['
        '{"name": "Augmentin", "strength": "625mg", "directions": "1 tab BD"}, '
        '{"name": "Ferro", "strength": "", "directions": "once daily"}]}\n```',
        encoding="utf-8",
    )
    return path


def _run_json(argv, capsys):
    main(argv + ["--format", "json"])
    return json.loads(capsys.readouterr().out)


class TestArgParser:
    """Test the command line definition."""

    def test_match_defaults(self):
        args = setup_arg_parser().parse_args(["match", "Augmentn", "--catalog-csv", "drugs.csv"])

        assert args.action == "match"
        assert args.query_name == "Augmentn"
        assert args.auto_threshold == 0.63
        assert args.suggest_threshold == 0.40
        assert args.max_candidates == 5
        assert args.table == "drugs"
        assert args.schema == "dbo"
        assert args.from_db is False

    def test_thresholds_from_environment(self, monkeypatch):
        monkeypatch.setenv("RX_AUTO_MATCH_THRESHOLD", "0.8")
        monkeypatch.setenv("RX_MAX_CANDIDATES", "3")
        args = setup_arg_parser().parse_args(["match", "Augmentn", "--catalog-csv", "drugs.csv"])

        assert args.auto_threshold == 0.8
        assert args.max_candidates == 3

    def test_catalog_source_required(self):
        with pytest.raises(SystemExit) as exc_info:
            setup_arg_parser().parse_args(["match", "Augmentn"])
        assert exc_info.value.code == 2

    def test_catalog_sources_exclusive(self):
        with pytest.raises(SystemExit):
            setup_arg_parser().parse_args(["match", "Augmentn", "--catalog-csv", "a.csv", "--from-db"])

    def test_batch_short_options(self):
        args = setup_arg_parser().parse_args(["batch-match", "-ic", "names.csv", "-nc", "drug", "--from-db"])
        assert args.input_csv == "names.csv"
        assert args.name_column == "drug"

    def test_similarity_needs_no_catalog(self):
        args = setup_arg_parser().parse_args(["similarity", "Ferro", "Fersamal"])
        assert (args.name_a, args.name_b) == ("Ferro", "Fersamal")

    def test_action_required(self):
        with pytest.raises(SystemExit):
            setup_arg_parser().parse_args([])


class TestBuildMatcher:
    """Test build_matcher function."""

    def test_invalid_thresholds_are_usage_errors(self):
        parser = setup_arg_parser()
        args = parser.parse_args(["match", "x", "--catalog-csv", "a.csv", "--suggest-threshold", "0.9"])

        with pytest.raises(SystemExit) as exc_info:
            build_matcher(args, parser)
        assert exc_info.value.code == 2

    def test_valid_thresholds(self):
        parser = setup_arg_parser()
        args = parser.parse_args(["match", "x", "--catalog-csv", "a.csv", "--max-candidates", "2"])
        assert build_matcher(args, parser).max_candidates == 2


class TestSetupLogging:
    """Test setup_logging function."""

    def test_debug_level(self):
        setup_logging(debug=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file(self, temp_dir):
        log_file = temp_dir / "rx.log"
        setup_logging(log_file=str(log_file))

        root = logging.getLogger()
        assert root.level == logging.INFO
        assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
        for handler in root.handlers:
            handler.close()


class TestDescribeArgs:
    """Test the argument summary written to the debug log."""

    def test_names_masked(self):
        args = setup_arg_parser().parse_args(["similarity", "Augmentn", "Fersamal"])
        described = describe_args(args, get_secure_logger("test"))

        assert described["name_a"] == "<text[8]>"
        assert described["name_b"] == "<text[8]>"
        assert described["action"] == "similarity"

    def test_other_arguments_kept(self):
        args = setup_arg_parser().parse_args(["match", "Augmentn", "--catalog-csv", "drugs.csv"])
        described = describe_args(args, get_secure_logger("test"))

        assert described["query_name"] == "<text[8]>"
        assert described["catalog_csv"] == "drugs.csv"
        assert args.query_name == "Augmentn"

    def test_debug_log_omits_query_name(self, catalog_csv, capsys):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        main_logger = logging.getLogger("rx_matcher.main")
        main_logger.addHandler(handler)
        try:
            main(["--debug", "match", "Augmentn", "--catalog-csv", str(catalog_csv)])
        finally:
            main_logger.removeHandler(handler)

        log_text = stream.getvalue()
        assert "Parsed arguments" in log_text
        assert "Augmentn" not in log_text


class TestMatchCommand:
    """Test the match action end to end."""

    def test_auto_match(self, catalog_csv, capsys):
        output = _run_json(["match", "Augmentn", "--catalog-csv", str(catalog_csv)], capsys)

        record = output["data"][0]
        assert record["query"] == "Augmentn"
        assert record["is_auto_matched"] is True
        assert record["matched"]["id"] == "d1"
        assert output["metadata"]["status"] == "success"
        assert output["metadata"]["action"] == "match"

    def test_suggestion(self, catalog_json, capsys):
        output = _run_json(["match", "Ferro", "--catalog-json", str(catalog_json)], capsys)

        record = output["data"][0]
        assert record["status"] == "suggested"
        assert [c["name"] for c in record["candidates"]] == ["Feroglobin", "Fersamal"]
        assert output["metadata"]["status"] == "success_no_match"

    def test_threshold_option(self, catalog_csv, capsys):
        output = _run_json(
            ["match", "Augmentn", "--catalog-csv", str(catalog_csv), "--auto-threshold", "0.9"], capsys,
        )
        assert output["data"][0]["status"] == "suggested"
        assert output["metadata"]["thresholds"]["auto_threshold"] == 0.9

    def test_output_file(self, catalog_csv, temp_dir):
        out_path = temp_dir / "out" / "match.csv"
        main(["match", "Panadol", "--catalog-csv", str(catalog_csv), "-o", str(out_path)])

        lines = out_path.read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("# run_timestamp_utc: ")
        assert any(line.startswith("query,matched_id,matched_name") for line in lines)

    def test_stdout_table(self, catalog_csv, capsys):
        main(["match", "Panadol", "--catalog-csv", str(catalog_csv)])
        out = capsys.readouterr().out

        assert "# status: success" in out
        assert "Panadol" in out

    def test_missing_catalog_exits_1(self, temp_dir):
        with pytest.raises(SystemExit) as exc_info:
            main(["match", "Panadol", "--catalog-csv", str(temp_dir / "missing.csv")])
        assert exc_info.value.code == 1


class TestBatchMatchCommand:
    """Test the batch-match action."""

    def test_batch(self, catalog_csv, names_csv, capsys):
        output = _run_json(
            ["batch-match", "-ic", str(names_csv), "-nc", "drug", "--catalog-csv", str(catalog_csv)], capsys,
        )

        assert [r["query"] for r in output["data"]] == ["Augmentn", "Ferro", "Xyzzyx"]
        assert [r["status"] for r in output["data"]] == ["auto_matched", "suggested", "unmatched"]
        assert output["metadata"]["status"] == "batch_partial_match"
        assert output["metadata"]["match_summary"] == {"auto_matched": 1, "suggested": 1, "unmatched": 1}

    def test_missing_column_gives_empty_batch(self, catalog_csv, names_csv, capsys):
        output = _run_json(["batch-match", "-ic", str(names_csv), "--catalog-csv", str(catalog_csv)], capsys)

        assert output["data"] == []
        assert output["metadata"]["status"] == "batch_input_empty"


class TestReconcileCommand:
    """Test the reconcile action."""

    def test_reconcile(self, catalog_csv, extraction_file, capsys):
        output = _run_json(["reconcile", "-e", str(extraction_file), "--catalog-csv", str(catalog_csv)], capsys)

        first, second = output["data"]
        assert first["found"] is True
        assert first["matchMethod"] == "exact"
        assert first["dbMatch"]["id"] == "d1"
        assert second["found"] is False
        assert second["matchMethod"] == "fuzzy_suggested"
        assert [m["name"] for m in second["similarMatches"]] == ["Feroglobin", "Fersamal"]
        assert output["metadata"]["status"] == "batch_partial_match"

    def test_unparseable_extraction(self, catalog_csv, temp_dir, capsys):
        path = temp_dir / "extraction.txt"
        path.write_text("I could not read this prescription.", encoding="utf-8")

        output = _run_json(["reconcile", "-e", str(path), "--catalog-csv", str(catalog_csv)], capsys)
        assert output["data"] == []

    def test_missing_extraction_file_exits_1(self, catalog_csv, temp_dir):
        with pytest.raises(SystemExit) as exc_info:
            main(["reconcile", "-e", str(temp_dir / "missing.txt"), "--catalog-csv", str(catalog_csv)])
        assert exc_info.value.code == 1


class TestSimilarityCommand:
    """Test the similarity action."""

    def test_metrics(self, capsys):
        output = _run_json(["similarity", "Augmentn", "Augmentin"], capsys)

        record = output["data"][0]
        assert record["levenshtein_distance"] == 1
        assert record["levenshtein_similarity"] == pytest.approx(8 / 9)
        assert record["similarity"] == pytest.approx(0.877778, abs=1e-6)
        assert output["metadata"]["status"] == "success"
        assert "match_summary" not in output["metadata"]


class TestDatabaseCatalog:
    """Test --from-db with the database layer mocked out."""

    def _patched_db(self, connection=True, rows=None):
        db = MagicMock()
        db.connection = MagicMock() if connection else None
        db.execute_query.return_value = True
        db.fetch_results.return_value = rows if rows is not None else []
        sql_interface_cls = MagicMock()
        sql_interface_cls.return_value.__enter__.return_value = db
        return patch.object(main_module, "SQLInterface", sql_interface_cls), db

    def test_from_db(self, sample_catalog_records, capsys):
        patcher, db = self._patched_db(rows=sample_catalog_records)
        with patcher:
            output = _run_json(["match", "Augmentn", "--from-db", "--table", "formulary"], capsys)

        assert output["data"][0]["matched"]["name"] == "Augmentin"
        sql = db.execute_query.call_args[0][0]
        assert "FROM [dbo].[formulary]" in sql

    def test_connection_failure_exits_1(self):
        patcher, _ = self._patched_db(connection=False)
        with patcher, pytest.raises(SystemExit) as exc_info:
            main(["match", "Augmentn", "--from-db"])
        assert exc_info.value.code == 1

    def test_invalid_table_exits_1(self):
        patcher, _ = self._patched_db()
        with patcher, pytest.raises(SystemExit) as exc_info:
            main(["match", "Augmentn", "--from-db", "--table", "drugs;DROP"])
        assert exc_info.value.code == 1
