"""
Unit tests for table name validation.
"""

import pytest

from backend.propgraph_server.errors import InvalidTableNameError
from backend.propgraph_server.validation import validate_table_name

DEFAULT = "main.default.property_graph_entity_edges"


class TestValidateTableName:
    """Tests for validate_table_name."""

    @pytest.mark.parametrize(
        "name",
        [
            "edges",
            "graph.edges",
            "main.graph.edges_v2",
            "`main`.`graph`.`edges`",
        ],
    )
    def test_accepts_one_to_three_parts(self, name):
        assert validate_table_name(name, DEFAULT) == name

    @pytest.mark.parametrize(
        "name",
        [
            "main.default.tbl; DROP TABLE x",
            "a.b.c.d",
            "a..b",
            ".edges",
            "edges.",
            "my-table",
            "edges --",
            "edges' OR '1'='1",
        ],
    )
    def test_rejects_injection_and_malformed(self, name):
        with pytest.raises(InvalidTableNameError):
            validate_table_name(name, DEFAULT)

    def test_missing_uses_default(self):
        assert validate_table_name(None, DEFAULT) == DEFAULT
        assert validate_table_name("", DEFAULT) == DEFAULT

    def test_surrounding_whitespace_trimmed(self):
        assert validate_table_name("  graph.edges ", DEFAULT) == "graph.edges"

    def test_error_is_value_error(self):
        with pytest.raises(ValueError, match="catalog.schema.table"):
            validate_table_name("x y", DEFAULT)
