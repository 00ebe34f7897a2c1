import pytest

from sqlweave.dialects import MySQLDialect


def test_placeholders_and_quoting():
    dialect = MySQLDialect()
    assert dialect.placeholder(3) == "?"
    assert dialect.quote_identifier("or`der") == "`or``der`"
    assert dialect.quote_string_literal("it's \\") == "'it''s \\\\'"
    assert dialect.format_table("shop.orders") == "`shop`.`orders`"


@pytest.mark.parametrize(
    "limit, offset, expected",
    [
        (0, 0, ""),
        (5, 0, "LIMIT 5"),
        (5, 2, "LIMIT 5 OFFSET 2"),
        (None, 2, "LIMIT 18446744073709551615 OFFSET 2"),
    ],
)
def test_limit_offset(limit, offset, expected):
    assert MySQLDialect().limit_offset(limit, offset) == expected


def test_type_mapping():
    dialect = MySQLDialect()
    assert dialect.map_type("string") == "VARCHAR(191)"
    assert dialect.map_type("boolean") == "TINYINT(1)"
    assert dialect.map_type("string", is_array=True) == "JSON"
    assert dialect.map_type("JSONB") == "JSON"
    assert dialect.map_type("BYTEA") == "BLOB"
    assert dialect.map_type("DECIMAL(10, 2)") == "DECIMAL(10, 2)"


def test_default_values():
    dialect = MySQLDialect()
    assert dialect.map_default_value("now()") == "CURRENT_TIMESTAMP"
    assert dialect.map_default_value("uuid()") == "(UUID())"


def test_full_text_uses_boolean_mode():
    dialect = MySQLDialect()
    assert dialect.normalize_full_text("go lang") == "+go* +lang*"
    assert dialect.full_text_query("body", "?", bound=True) == "MATCH(`body`) AGAINST(? IN BOOLEAN MODE)"


def test_json_queries():
    dialect = MySQLDialect()
    assert dialect.json_contains_query("tags", "?", bound=True) == "JSON_CONTAINS(`tags`, ?)"
    assert "JSON_LENGTH(`tags`) = 0" in dialect.json_is_empty_query("tags")


def test_conflict_clauses():
    dialect = MySQLDialect()
    assert dialect.skip_duplicates_clause(["id", "name"]) == "ON DUPLICATE KEY UPDATE `id` = `id`"
    assert dialect.skip_duplicates_clause([]) == ""
    assert (
        dialect.upsert_clause(["id"], ["name", "age"])
        == "ON DUPLICATE KEY UPDATE `name` = VALUES(`name`), `age` = VALUES(`age`)"
    )


def test_capabilities():
    capabilities = MySQLDialect().capabilities
    assert not capabilities.supports_returning
    assert not capabilities.supports_ilike
    assert capabilities.supports_full_text
