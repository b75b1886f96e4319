"""Unit tests for rx_matcher.catalog_store.repository module."""

import pytest

from rx_matcher.catalog_store import CatalogQueryError, CatalogRepository, InvalidQueryParametersError
from rx_matcher.matching.models import CatalogEntry


class TestCatalogRepositoryInit:
    """Test identifier validation."""

    def test_defaults(self, mock_sql_interface):
        repository = CatalogRepository(mock_sql_interface)
        assert (repository.schema, repository.table) == ("dbo", "drugs")

    @pytest.mark.parametrize("table", ["drugs; DROP TABLE drugs", "[drugs]", "1drugs", "", None])
    def test_invalid_table(self, mock_sql_interface, table):
        with pytest.raises(InvalidQueryParametersError, match="Invalid table name"):
            CatalogRepository(mock_sql_interface, table=table)

    def test_invalid_schema(self, mock_sql_interface):
        with pytest.raises(InvalidQueryParametersError, match="Invalid schema name"):
            CatalogRepository(mock_sql_interface, schema="dbo.x")


class TestBuildCatalogQuery:
    """Test the catalog SELECT."""

    def test_query(self, mock_sql_interface):
        sql, params = CatalogRepository(mock_sql_interface, table="formulary", schema="pharmacy").build_catalog_query()

        assert sql == (
            "SELECT [id], [name], [strength], [generic_name] FROM [pharmacy].[formulary] ORDER BY [id]"
        )
        assert params == ()


class TestFetchAll:
    """Test loading the catalog through the SQL interface."""

    def test_rows_become_entries(self, mock_sql_interface, sample_catalog_records, sample_catalog):
        mock_sql_interface.fetch_results.return_value = sample_catalog_records

        assert CatalogRepository(mock_sql_interface).fetch_all() == sample_catalog
        mock_sql_interface.execute_query.assert_called_once()

    def test_rows_without_name_skipped(self, mock_sql_interface):
        mock_sql_interface.fetch_results.return_value = [
            {"id": 1, "name": None},
            {"id": 2, "name": "  "},
            {"id": 3, "name": "Fersamal", "strength": "210mg", "generic_name": None},
        ]

        assert CatalogRepository(mock_sql_interface).fetch_all() == [CatalogEntry(3, "Fersamal", "210mg")]

    def test_empty_table(self, mock_sql_interface):
        assert CatalogRepository(mock_sql_interface).fetch_all() == []

    def test_execute_failure(self, mock_sql_interface):
        mock_sql_interface.execute_query.return_value = False

        with pytest.raises(CatalogQueryError, match="Catalog query failed"):
            CatalogRepository(mock_sql_interface).fetch_all()

    def test_fetch_failure(self, mock_sql_interface):
        mock_sql_interface.fetch_results.return_value = None

        with pytest.raises(CatalogQueryError, match="Error fetching catalog rows"):
            CatalogRepository(mock_sql_interface).fetch_all()
