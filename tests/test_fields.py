from __future__ import annotations

import pytest

from logbook.errors import InvalidFieldSet, InvalidLogName
from logbook.fields import MAX_FIELDS, check_field_set, normalize_log_name, parse_field_set
from logbook.models import FieldDefinition, FieldKind


def test_parse_field_set_retypes_json() -> None:
    fields = parse_field_set(
        [
            {"name": " count ", "kind": "number", "required": True},
            {"name": "note", "kind": "text"},
            {"name": "outside", "kind": "boolean", "required": False},
        ]
    )

    assert fields == (
        FieldDefinition("count", FieldKind.NUMBER, True),
        FieldDefinition("note", FieldKind.TEXT, False),
        FieldDefinition("outside", FieldKind.BOOLEAN, False),
    )


def test_parse_field_set_accepts_none() -> None:
    assert parse_field_set(None) == ()


@pytest.mark.parametrize(
    "raw",
    [
        [{"name": "a", "kind": "number"}, {"name": "a", "kind": "text"}],
        [{"name": "a", "kind": "number"}, {"name": " a ", "kind": "number"}],
        [{"name": "", "kind": "text"}],
        [{"name": "   ", "kind": "text"}],
        [{"name": "x" * 101, "kind": "text"}],
        [{"name": "a", "kind": "date"}],
        [{"name": "a", "kind": "number", "required": "false"}],
        ["not-an-object"],
    ],
)
def test_invalid_field_sets_are_rejected(raw) -> None:
    with pytest.raises(InvalidFieldSet):
        parse_field_set(raw)


def test_field_names_clash_regardless_of_case() -> None:
    with pytest.raises(InvalidFieldSet):
        check_field_set([FieldDefinition("Reps", FieldKind.NUMBER), FieldDefinition("reps", FieldKind.NUMBER)])


def test_field_names_keep_their_case() -> None:
    fields = check_field_set([FieldDefinition(" Reps ", FieldKind.NUMBER)])
    assert [definition.name for definition in fields] == ["Reps"]


def test_too_many_fields() -> None:
    fields = [FieldDefinition(f"f{index}", FieldKind.TEXT) for index in range(MAX_FIELDS + 1)]
    with pytest.raises(InvalidFieldSet):
        check_field_set(fields)


def test_log_names_are_trimmed_and_bounded() -> None:
    assert normalize_log_name("  Water ") == "Water"
    with pytest.raises(InvalidLogName):
        normalize_log_name("   ")
    with pytest.raises(InvalidLogName):
        normalize_log_name("x" * 101)
