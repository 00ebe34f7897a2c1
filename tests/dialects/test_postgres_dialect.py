import pytest

from sqlweave.dialects import PostgresDialect, get_dialect, normalize_ts_query


def test_placeholders_are_numbered():
    dialect = PostgresDialect()
    assert [dialect.placeholder(i) for i in (1, 2, 10)] == ["$1", "$2", "$10"]
    assert dialect.param_style == "numeric_dollar"


def test_identifier_quoting_escapes_quotes_and_schema():
    dialect = PostgresDialect()
    assert dialect.quote_identifier('we"ird') == '"we""ird"'
    assert dialect.format_table("public.users") == '"public"."users"'
    assert dialect.format_column("users.*") == '"users".*'


@pytest.mark.parametrize(
    "limit, offset, expected",
    [
        (0, 0, ""),
        (None, None, ""),
        (5, 0, "LIMIT 5"),
        (5, 10, "LIMIT 5 OFFSET 10"),
        (0, 10, "OFFSET 10"),
    ],
)
def test_limit_offset(limit, offset, expected):
    assert PostgresDialect().limit_offset(limit, offset) == expected


def test_type_mapping():
    dialect = PostgresDialect()
    assert dialect.map_type("string") == "TEXT"
    assert dialect.map_type("json") == "JSONB"
    assert dialect.map_type("int", is_array=True) == "INTEGER[]"
    assert dialect.map_type("VARCHAR(20)") == "VARCHAR(20)"
    assert dialect.map_type("mystery") == "TEXT"


def test_default_values():
    dialect = PostgresDialect()
    assert dialect.map_default_value("now()") == "NOW()"
    assert dialect.map_default_value("uuid()") == "gen_random_uuid()"
    assert dialect.map_default_value("autoincrement()") == ""
    assert dialect.map_default_value("'draft'") == "'draft'"


def test_full_text_query_forms():
    dialect = PostgresDialect()
    assert dialect.normalize_full_text("go  lang") == "go:* & lang:*"
    assert dialect.full_text_query("body", "$1", bound=True) == '"body" @@ to_tsquery($1)'
    assert (
        dialect.full_text_query("body", "$1", bound=True, config="simple")
        == "to_tsvector('simple', \"body\") @@ to_tsquery('simple', $1)"
    )
    with pytest.raises(ValueError):
        dialect.full_text_query("body", "$1", bound=True, config="x'; drop")


def test_normalize_blank_query():
    assert normalize_ts_query("   ") == ""


def test_json_queries():
    dialect = PostgresDialect()
    assert dialect.json_contains_query("tags", "$1", bound=True) == '"tags" @> $1::jsonb'
    assert "jsonb_array_length" in dialect.json_is_empty_query("tags")


def test_conflict_clauses():
    dialect = PostgresDialect()
    assert dialect.skip_duplicates_clause(["id"]) == "ON CONFLICT DO NOTHING"
    assert (
        dialect.upsert_clause(["id"], ["name"])
        == 'ON CONFLICT ("id") DO UPDATE SET "name" = EXCLUDED."name"'
    )
    assert dialect.upsert_clause(["id"], []) == 'ON CONFLICT ("id") DO NOTHING'


def test_capabilities():
    capabilities = PostgresDialect().capabilities
    assert capabilities.supports_returning
    assert capabilities.supports_ilike


def test_get_dialect_resolves_names_and_falls_back():
    assert get_dialect("postgres").name == "postgresql"
    assert get_dialect(" SQLite ").name == "sqlite"
    assert get_dialect("mariadb").name == "mysql"
    assert get_dialect("oracle").name == "postgresql"
    assert get_dialect(None).name == "postgresql"
