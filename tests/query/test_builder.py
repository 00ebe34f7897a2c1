import logging
from dataclasses import dataclass
from typing import Optional

import pytest

from sqlweave.adapters import ConnectionConfig, SQLiteAdapter
from sqlweave.config import QueryConfig
from sqlweave.core import ConfigurationError, ResultTooLargeError, column
from sqlweave.dialects import PostgresDialect, SQLiteDialect
from sqlweave.query import Query, RecordNotFoundError, contains, gte
from sqlweave.validation import EmailValidator, ValidationError


@dataclass
class User:
    id: int = 0
    name: str = ""
    age: int = 0
    email: Optional[str] = None


@dataclass
class Tag:
    id: str = ""
    label: str = ""


@dataclass
class Member:
    id: int = 0
    email: str = column(required=True, validators=[EmailValidator()], default="")


class RecordingExecutor:
    def __init__(self):
        self.dialect = SQLiteDialect()
        self.calls = []

    def exec(self, sql, params=None):
        self.calls.append(sql)
        raise AssertionError("no statement expected")

    query = query_row = exec


@pytest.fixture
def adapter(tmp_path):
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'builder.db'}"))
    adapter.exec(
        "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, "
        "age INTEGER, email TEXT)"
    )
    adapter.exec("CREATE TABLE tags (id TEXT PRIMARY KEY, label TEXT)")
    yield adapter
    adapter.close()


def users(adapter, **kwargs):
    kwargs.setdefault("primary_key", "id")
    kwargs.setdefault("record_type", User)
    return Query(adapter, "users", **kwargs)


def seed(adapter):
    for name, age in (("Ann", 30), ("Bob", 17), ("Cid", 42)):
        users(adapter).create(User(name=name, age=age))


def test_create_returns_stored_record(adapter):
    created = users(adapter).create(User(name="Ann", age=30))
    assert created == User(id=1, name="Ann", age=30, email=None)


def test_create_from_mapping_returns_record_type(adapter):
    created = users(adapter).create({"name": "Cy", "age": 4, "id": 0})
    assert created == User(id=1, name="Cy", age=4)


def test_textual_primary_key_is_generated(adapter):
    tag = Query(adapter, "tags", primary_key="id", record_type=Tag).create(Tag(label="python"))
    assert tag.label == "python"
    assert len(tag.id) == 36


def test_create_without_primary_key_returns_none(adapter, caplog):
    caplog.set_level(logging.DEBUG, logger="sqlweave.query")
    assert Query(adapter, "users").create({"name": "Zed"}) is None
    assert "no primary key value" in caplog.text
    assert adapter.query_row("SELECT name FROM users") == ("Zed",)


def test_find_with_conditions_and_order(adapter):
    seed(adapter)
    found = users(adapter).where({"age": gte(18)}).order("-age").find()
    assert [user.name for user in found] == ["Cid", "Ann"]


def test_find_with_paging_and_raw_fragment(adapter):
    seed(adapter)
    found = users(adapter).where("age < ?", 100).order("name").take(1).skip(1).find()
    assert [user.name for user in found] == ["Bob"]


def test_first_returns_none_when_no_row(adapter):
    assert users(adapter).where({"name": "nobody"}).first() is None


def test_first_without_record_type_returns_dict(adapter):
    seed(adapter)
    row = Query(adapter, "users").where({"name": contains("nn")}).first()
    assert row == {"id": 1, "name": "Ann", "age": 30, "email": None}


def test_count_and_aggregates(adapter):
    seed(adapter)
    assert users(adapter).count() == 3
    assert users(adapter).where({"age": gte(18)}).count() == 2
    assert users(adapter).sum("age") == 89
    assert users(adapter).max("age") == 42
    grouped = users(adapter).where({"age": gte(18)}).group("age").order("age").aggregate("COUNT")
    assert grouped == [{"age": 30, "count": 1}, {"age": 42, "count": 1}]


def test_mass_update_and_delete(adapter):
    seed(adapter)
    assert users(adapter).where({"name": "Ann"}).updates({"age": 31}) == 1
    assert users(adapter).where({"name": "Ann"}).first().age == 31
    assert users(adapter).where("age < ?", 18).delete() == 1
    assert users(adapter).count() == 2


def test_mass_writes_without_conditions_send_nothing():
    executor = RecordingExecutor()
    query = Query(executor, "users")
    with pytest.raises(ValidationError):
        query.delete()
    with pytest.raises(ValidationError):
        query.update("age", 1)
    assert executor.calls == []


def test_update_record_by_primary_key(adapter):
    created = users(adapter).create(User(name="Ann", age=30))
    updated = users(adapter).update_record(User(id=created.id, name="Ann", age=32))
    assert updated == User(id=created.id, name="Ann", age=32)


def test_update_missing_record_raises(adapter):
    with pytest.raises(RecordNotFoundError) as excinfo:
        users(adapter).update_record(User(id=99, name="Ghost"))
    assert excinfo.value.code == "P2025"


def test_update_record_requires_primary_key(adapter):
    with pytest.raises(ConfigurationError):
        Query(adapter, "users", record_type=User).update_record(User(id=1, name="A"))


def test_save_inserts_then_updates(adapter):
    users(adapter).save(User(id=1, name="Ann", age=30, email="ann@example.com"))
    saved = users(adapter).save(User(id=1, name="Bo", age=5))
    assert saved == User(id=1, name="Bo", age=5, email="ann@example.com")
    assert users(adapter).count() == 1


def test_delete_by_id(adapter):
    seed(adapter)
    assert users(adapter).delete_by_id(2) == 1
    assert users(adapter).delete_by_id(2) == 0


def test_validation_runs_before_insert():
    executor = RecordingExecutor()
    with pytest.raises(ValidationError) as excinfo:
        Query(executor, "members", primary_key="id", record_type=Member).create(Member(email="bad"))
    assert "email" in excinfo.value.errors
    with pytest.raises(ValidationError):
        Query(executor, "members", primary_key="id", record_type=Member).create(Member())
    assert executor.calls == []


def test_row_ceiling_applies_to_find(adapter):
    seed(adapter)
    config = QueryConfig(dialect=SQLiteDialect(), max_scan_rows=2)
    with pytest.raises(ResultTooLargeError):
        users(adapter, config=config).find()
    assert len(users(adapter, config=config).take(2).find()) == 2


def test_config_without_dialect_takes_the_executor_dialect(adapter):
    config = QueryConfig(max_scan_rows=50)
    query = users(adapter, config=config).where("age > ?", 18).take(1).skip(1)
    assert query.dialect.name == "sqlite"
    assert query.to_sql() == (
        'SELECT "id", "name", "age", "email" FROM "users" WHERE age > ? LIMIT 1 OFFSET 1',
        [18],
    )
    assert config.dialect is None


def test_config_dialect_must_match_executor(adapter):
    with pytest.raises(ConfigurationError):
        users(adapter, config=QueryConfig(dialect=PostgresDialect()))


def test_wildcard_select_scans_cursor_columns(adapter):
    seed(adapter)
    everyone = users(adapter).select("*").order("id").find()
    assert everyone[0] == User(id=1, name="Ann", age=30, email=None)
    assert len(everyone) == 3
    first = users(adapter).select("users.*").where({"name": "Cid"}).first()
    assert first == User(id=3, name="Cid", age=42, email=None)


def test_create_many_from_query(adapter):
    result = users(adapter).create_many([User(name="A", age=1), User(name="B", age=2)])
    assert result.affected_count == 2
    assert users(adapter).count() == 2


def test_empty_table_name_is_rejected(adapter):
    with pytest.raises(ValidationError):
        Query(adapter, "")
