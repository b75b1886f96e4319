"""Shared pytest configuration and fixtures for rx-matcher tests."""

import csv
import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest

from rx_matcher.catalog_store import SQLInterface
from rx_matcher.matching import FuzzyMatcher
from rx_matcher.matching.models import CatalogEntry, MatchResult


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def sample_catalog_records():
    """Drug table rows as the catalog store returns them."""
    return [
        {"id": "d1", "name": "Augmentin", "strength": "625mg", "generic_name": "Amoxicillin/Clavulanate"},
        {"id": "d2", "name": "Amoxicillin", "strength": "500mg", "generic_name": "Amoxicillin"},
        {"id": "d3", "name": "Panadol", "strength": "500mg", "generic_name": "Paracetamol"},
        {"id": "d4", "name": "Feroglobin", "strength": "", "generic_name": "Iron"},
        {"id": "d5", "name": "Fersamal", "strength": "210mg", "generic_name": "Ferrous Fumarate"},
    ]


@pytest.fixture
def sample_catalog(sample_catalog_records):
    """The sample drug table as CatalogEntry objects."""
    return [CatalogEntry.from_record(record) for record in sample_catalog_records]


@pytest.fixture
def catalog_csv(temp_dir, sample_catalog_records):
    """Write the sample catalog to a CSV file."""
    path = temp_dir / "drugs.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=["id", "name", "strength", "generic_name"])
        writer.writeheader()
        writer.writerows(sample_catalog_records)
    return path


@pytest.fixture
def catalog_json(temp_dir, sample_catalog_records):
    """Write the sample catalog to a JSON file."""
    path = temp_dir / "drugs.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"drugs": sample_catalog_records}, f)
    return path


@pytest.fixture
def fuzzy_matcher():
    """Create a FuzzyMatcher with the default thresholds."""
    return FuzzyMatcher()


@pytest.fixture
def mock_sql_interface():
    """Mock SQLInterface for testing without database connection."""
    mock = Mock(spec=SQLInterface)
    mock.connect.return_value = True
    mock.connection = MagicMock()
    mock.cursor = MagicMock()
    mock.execute_query.return_value = True
    mock.fetch_results.return_value = []
    mock.close_connection.return_value = None
    return mock


@pytest.fixture
def mock_logger():
    """Mock logger for testing."""
    return Mock()


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables so no .env file is needed."""
    test_env = {
        "SQL_SERVER": "test_server",
        "DATABASE": "test_db",
        "USERNAME_SQL": "test_user",
        "PASSWORD": "test_pass",
        "SQL_DRIVER": "{ODBC Driver 18 for SQL Server}",
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)
    for key in ("RX_AUTO_MATCH_THRESHOLD", "RX_SUGGESTION_THRESHOLD", "RX_MAX_CANDIDATES", "RX_MATCHER_LOGFILE"):
        monkeypatch.delenv(key, raising=False)

    yield


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "database: mark test as requiring database")


class CustomAssertions:
    """Custom assertion helpers for match results."""

    @staticmethod
    def assert_valid_match_result(result: MatchResult, suggestion_floor: float = 0.40,
                                  max_candidates: int = 5) -> None:
        """Assert the ordering, floor, size and auto-match invariants of a MatchResult."""
        scores = [candidate.score for candidate in result.candidates]
        assert scores == sorted(scores, reverse=True)
        assert len(result.candidates) <= max_candidates
        assert all(score >= suggestion_floor for score in scores)
        if result.is_auto_matched:
            assert result.matched is not None
            assert result.matched == result.candidates[0].entry
        else:
            assert result.matched is None


@pytest.fixture
def custom_assertions():
    """Provide custom assertion helpers."""
    return CustomAssertions()
