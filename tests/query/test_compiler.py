import logging

import pytest

from sqlweave.config import QueryConfig, QueryLimits
from sqlweave.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from sqlweave.query import OrderBy, Query, SQLAccumulator, gt, in_, render_raw
from sqlweave.query.compiler import pk_condition, render_delete, render_insert, render_update
from sqlweave.validation import ValidationError


class FakeExecutor:
    def __init__(self, dialect):
        self.dialect = dialect
        self.calls = []

    def exec(self, sql, params=None):
        self.calls.append((sql, params))
        raise AssertionError("no statement expected")

    query = query_row = exec


def users(dialect=None, **kwargs):
    return Query(FakeExecutor(dialect or PostgresDialect()), "users", **kwargs)


def test_select_with_conditions_order_and_paging():
    sql, args = (
        users()
        .where("age > ?", 18)
        .or_({"name": "bob"})
        .order("-name", "id")
        .take(5)
        .skip(10)
        .to_sql()
    )
    assert sql == (
        'SELECT * FROM "users" WHERE age > $1 OR "name" = $2 '
        'ORDER BY "name" DESC, "id" ASC LIMIT 5 OFFSET 10'
    )
    assert args == [18, "bob"]


def test_mapping_condition_with_several_fields_is_grouped():
    sql, args = users().where({"status": "active", "age": gt(21)}).to_sql()
    assert sql == 'SELECT * FROM "users" WHERE ("status" = $1 AND "age" > $2)'
    assert args == ["active", 21]


def test_not_wraps_condition():
    sql, _ = users().where("a = ?", 1).not_({"status": "draft", "age": 3}).to_sql()
    assert sql == 'SELECT * FROM "users" WHERE a = $1 AND NOT ("status" = $2 AND "age" = $3)'


def test_join_markers_are_numbered_before_where():
    query = users().where("users.age > ?", 18).left_join(
        "orders", "orders.user_id = users.id AND orders.total > ?", 100
    )
    sql, args = query.to_sql()
    assert sql == (
        'SELECT * FROM "users" LEFT JOIN "orders" ON orders.user_id = users.id '
        "AND orders.total > $1 WHERE users.age > $2"
    )
    assert args == [100, 18]


def test_unknown_join_type_is_rejected():
    with pytest.raises(ValidationError):
        users().join("SIDEWAYS", "orders", "1 = 1")


def test_select_list_and_single_row():
    sql, _ = users(columns=["id", "name"]).where({"id": 3}).to_sql(single=True)
    assert sql == 'SELECT "id", "name" FROM "users" WHERE "id" = $1 LIMIT 1'


def test_zero_take_and_skip_render_nothing():
    sql, _ = users().take(0).skip(0).to_sql()
    assert sql == 'SELECT * FROM "users"'


def test_negative_paging_is_rejected():
    with pytest.raises(ValidationError):
        users().take(-1)
    with pytest.raises(ValidationError):
        users().skip(-1)


def test_mysql_offset_without_limit():
    sql, _ = users(MySQLDialect()).skip(20).to_sql()
    assert sql == "SELECT * FROM `users` LIMIT 18446744073709551615 OFFSET 20"


def test_group_having_aggregate():
    query = users().where("active = ?", True).group("status").having("COUNT(*) > ?", 2)
    sql, args = query._compiler().aggregate("count")
    assert sql == (
        'SELECT "status", COUNT(*) FROM "users" WHERE active = $1 '
        'GROUP BY "status" HAVING COUNT(*) > $2'
    )
    assert args == [True, 2]


def test_aggregate_requires_field_except_count():
    with pytest.raises(ValidationError):
        users()._compiler().aggregate("SUM")
    with pytest.raises(ValidationError):
        users()._compiler().aggregate("MEDIAN", "age")


def test_count_sql_ignores_ordering():
    sql, args = users().where({"age": gt(3)}).order("name").count_sql()
    assert sql == 'SELECT COUNT(*) FROM "users" WHERE "age" > $1'
    assert args == [3]


def test_reset_clears_clause_state():
    query = users().where("a = ?", 1).order("name").take(3)
    query.reset()
    assert query.to_sql() == ('SELECT * FROM "users"', [])


def test_placeholder_count_matches_arguments():
    sql, args = (
        users()
        .where({"id": in_(1, 2, 3)})
        .or_("name LIKE ?", "a%")
        .having("SUM(total) > ?", 10)
        .group("id")
        .to_sql()
    )
    assert sql.count("$") == len(args) == 5


def test_clause_limits_drop_extra_entries(caplog):
    config = QueryConfig(dialect=PostgresDialect(), limits=QueryLimits(max_order_fields=1))
    caplog.set_level(logging.WARNING, logger="sqlweave.query")
    query = users(config=config).order("a", "b")
    assert query.state.order_by == [OrderBy("a")]
    assert "Dropping order field on users: limit of 1 reached" in caplog.text


def test_args_without_raw_fragment_are_rejected():
    with pytest.raises(ValidationError):
        users().where({"a": 1}, 2)


def test_order_by_parse_forms():
    assert OrderBy.parse("name desc") == OrderBy("name", "DESC")
    assert OrderBy.parse("-name") == OrderBy("name", "DESC")
    assert OrderBy.parse("name") == OrderBy("name", "ASC")
    assert OrderBy("name", "sideways").normalized_direction == "ASC"


# Raw fragments -------------------------------------------------------------


def raw(fragment, *args, dialect=None):
    sql, acc = render_raw(fragment, args, SQLAccumulator(dialect or PostgresDialect()))
    return sql, list(acc.args)


def test_raw_sequence_expands_inside_parentheses():
    assert raw("id IN (?)", [1, 2, 3]) == ("id IN ($1, $2, $3)", [1, 2, 3])
    assert raw("id IN ?", (4, 5)) == ("id IN ($1, $2)", [4, 5])


def test_raw_sequence_guards():
    with pytest.raises(ValidationError):
        raw("id = ?", [1, 2])
    with pytest.raises(ValidationError):
        raw("id IN (?)", [])


def test_raw_marker_count_must_match():
    with pytest.raises(ValidationError):
        raw("a = ? AND b = ?", 1)
    with pytest.raises(ValidationError):
        raw("a = ?", 1, 2)


def test_raw_escaped_and_quoted_markers_stay_literal():
    assert raw("data ?? 'key' AND note = '?' AND id = ?", 9) == (
        "data ? 'key' AND note = '?' AND id = $1",
        [9],
    )
    assert raw("id = ?", 9, dialect=SQLiteDialect()) == ("id = ?", [9])


# Accumulator ---------------------------------------------------------------


def test_merge_rejects_diverged_arguments():
    base = SQLAccumulator(PostgresDialect())
    _, left = base.bind(1)
    _, right = base.bind(2)
    with pytest.raises(RuntimeError):
        left.merge(right.fresh())


def test_merge_takes_fragments_and_arguments():
    base = SQLAccumulator(PostgresDialect()).add("SELECT 1")
    token, sub = base.fresh().bind("x")
    merged = base.merge(sub.add(f"WHERE a = {token}"))
    assert merged.build() == ("SELECT 1 WHERE a = $1", ["x"])


# Write statements ----------------------------------------------------------


def test_multi_row_insert_numbers_placeholders():
    sql, args = render_insert(PostgresDialect(), "t", ["a", "b"], [[1, 2], [3, 4]])
    assert sql == 'INSERT INTO "t" ("a", "b") VALUES ($1, $2), ($3, $4)'
    assert args == [1, 2, 3, 4]


def test_insert_with_returning_and_default_values():
    sql, _ = render_insert(PostgresDialect(), "t", ["a"], [[1]], returning=["id", "a"])
    assert sql == 'INSERT INTO "t" ("a") VALUES ($1) RETURNING "id", "a"'
    assert render_insert(PostgresDialect(), "t", [], [[]]) == ('INSERT INTO "t" DEFAULT VALUES', [])
    assert render_insert(MySQLDialect(), "t", [], [[]]) == ("INSERT INTO `t` () VALUES ()", [])


def test_insert_row_width_is_checked():
    with pytest.raises(ValidationError):
        render_insert(PostgresDialect(), "t", ["a", "b"], [[1]])


def test_update_and_delete_statements():
    sql, args = render_update(PostgresDialect(), "t", [("name", "x")], [pk_condition("id", 4)])
    assert sql == 'UPDATE "t" SET "name" = $1 WHERE "id" = $2'
    assert args == ["x", 4]
    assert render_delete(MySQLDialect(), "t", [pk_condition("id", 4)]) == (
        "DELETE FROM `t` WHERE `id` = ?",
        [4],
    )
    with pytest.raises(ValidationError):
        render_update(PostgresDialect(), "t", [], [])
