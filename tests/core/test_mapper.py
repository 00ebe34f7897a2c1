import logging
from dataclasses import dataclass, field
from typing import Optional

import pytest

from sqlweave.core import (
    ColumnMapper,
    ConfigurationError,
    ResultTooLargeError,
    ScanError,
    build_schema,
    column,
    is_zero,
)


@dataclass
class Account:
    id: int = 0
    displayName: str = ""
    createdAt: Optional[str] = None


@dataclass
class Labelled:
    title: str = column(alias="label", default="")
    caption: str = column(name="label", default="")


@dataclass
class WithDefaults:
    id: int = 0
    tags: list = field(default_factory=list)
    status: str = "draft"


def test_snake_case_columns_map_onto_fields():
    mapper = ColumnMapper()
    record = mapper.scan_row((1, "Ann", "2024-01-01"), ["id", "display_name", "created_at"], Account)
    assert record == Account(id=1, displayName="Ann", createdAt="2024-01-01")


def test_undeclared_columns_are_discarded(caplog):
    caplog.set_level(logging.DEBUG, logger="sqlweave.core.mapper")
    mapper = ColumnMapper()
    record = mapper.scan_row((1, "extra", "Ann"), ["id", "unknown", "display_name"], Account)
    assert record.id == 1
    assert record.displayName == "Ann"
    assert "unknown" in caplog.text


def test_override_name_beats_alias():
    mapper = ColumnMapper()
    record = mapper.scan_row(("hello",), ["label"], Labelled)
    assert record.caption == "hello"
    assert record.title == ""


def test_qualified_column_names_resolve_by_last_segment():
    mapper = ColumnMapper()
    record = mapper.scan_row((4,), ["accounts.id"], Account)
    assert record.id == 4


def test_missing_columns_fall_back_to_defaults():
    mapper = ColumnMapper()
    record = mapper.scan_row((3,), ["id"], WithDefaults)
    assert record == WithDefaults(id=3, tags=[], status="draft")


def test_rows_without_record_type_become_dicts():
    mapper = ColumnMapper()
    rows = mapper.scan_rows([(1, "a"), (2, "b")], ["id", "name"])
    assert rows == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]


def test_mapping_rows_are_read_by_column_name():
    mapper = ColumnMapper()
    record = mapper.scan_row({"display_name": "Bo", "id": 9}, ["id", "display_name"], Account)
    assert record == Account(id=9, displayName="Bo")


def test_row_ceiling_allows_exactly_the_limit():
    mapper = ColumnMapper()
    rows = [(index,) for index in range(3)]
    assert len(mapper.scan_rows(rows, ["id"], Account, max_rows=3)) == 3
    with pytest.raises(ResultTooLargeError) as excinfo:
        mapper.scan_rows(rows + [(3,)], ["id"], Account, max_rows=3)
    assert excinfo.value.limit == 3


def test_row_width_mismatch_raises_scan_error():
    mapper = ColumnMapper()
    with pytest.raises(ScanError):
        mapper.scan_row((1, "Ann"), ["id"], Account)
    with pytest.raises(ScanError):
        mapper.scan_rows([(1,)], ["id", "name"])


def test_schema_is_cached_per_type():
    mapper = ColumnMapper()
    first = mapper.schema_for(Account)
    assert mapper.schema_for(Account) is first
    assert len(mapper) == 1
    mapper.clear()
    assert len(mapper) == 0


def test_non_dataclass_record_type_is_rejected():
    class Plain:
        pass

    with pytest.raises(ConfigurationError):
        build_schema(Plain)


def test_schema_marks_textual_fields():
    schema = build_schema(Account)
    textual = {spec.name: spec.textual for spec in schema}
    assert textual == {"id": False, "displayName": True, "createdAt": True}


@pytest.mark.parametrize(
    "value, expected",
    [(None, True), (0, True), ("", True), ([], True), (False, True), (1, False), ("x", False)],
)
def test_is_zero(value, expected):
    assert is_zero(value) is expected


def test_override_and_alias_on_one_field():
    @dataclass
    class Story:
        title: str = column(name="headline", alias="label", default="")
        label: str = ""

    mapper = ColumnMapper()
    assert mapper.scan_row(("a",), ["headline"], Story) == Story(title="a")
    # An alias outranks another field's snake_case name.
    assert mapper.scan_row(("b",), ["label"], Story) == Story(title="b")
