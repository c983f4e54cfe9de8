"""Parsing and naming rules for log names and field definition lists."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence, Tuple

from .errors import InvalidFieldSet, InvalidLogName
from .models import FieldDefinition, FieldKind

MAX_FIELDS = 20
MAX_FIELD_NAME_LENGTH = 100
MAX_LOG_NAME_LENGTH = 100


def normalize_log_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned or len(cleaned) > MAX_LOG_NAME_LENGTH:
        raise InvalidLogName(f"name must be 1-{MAX_LOG_NAME_LENGTH} characters")
    return cleaned


def parse_kind(value: object) -> FieldKind:
    try:
        return FieldKind(str(value))
    except ValueError as exc:
        raise InvalidFieldSet("field kind must be 'text', 'number', or 'boolean'") from exc


def field_from_dict(data: Mapping[str, object]) -> FieldDefinition:
    """Re-type a JSON field definition into a :class:`FieldDefinition`."""

    if not isinstance(data, Mapping):
        raise InvalidFieldSet("field definitions must be objects")
    required = data.get("required", False)
    if not isinstance(required, bool):
        raise InvalidFieldSet("field 'required' must be true or false")
    return FieldDefinition(
        name=str(data.get("name") or ""),
        kind=parse_kind(data.get("kind")),
        required=required,
    )


def check_field_set(fields: Iterable[FieldDefinition]) -> Tuple[FieldDefinition, ...]:
    """Return the trimmed field list or raise :class:`InvalidFieldSet`.

    Names are trimmed and compared without regard to case, but stored as
    entered. An empty name, a name longer than ``MAX_FIELD_NAME_LENGTH`` or
    two definitions sharing a name reject the whole list; nothing is
    partially accepted.
    """

    checked: List[FieldDefinition] = []
    seen = set()
    for definition in fields:
        name = definition.name.strip()
        if not name:
            raise InvalidFieldSet("field name must not be empty")
        if len(name) > MAX_FIELD_NAME_LENGTH:
            raise InvalidFieldSet(f"field name must be 1-{MAX_FIELD_NAME_LENGTH} characters")
        if name.casefold() in seen:
            raise InvalidFieldSet(f"duplicate field name: {name}")
        seen.add(name.casefold())
        checked.append(FieldDefinition(name=name, kind=FieldKind(definition.kind), required=definition.required))

    if len(checked) > MAX_FIELDS:
        raise InvalidFieldSet(f"too many fields (max {MAX_FIELDS})")
    return tuple(checked)


def parse_field_set(raw: Sequence[Mapping[str, object]] | None) -> Tuple[FieldDefinition, ...]:
    return check_field_set(field_from_dict(item) for item in (raw or []))


__all__ = [
    "MAX_FIELDS",
    "MAX_FIELD_NAME_LENGTH",
    "MAX_LOG_NAME_LENGTH",
    "check_field_set",
    "field_from_dict",
    "normalize_log_name",
    "parse_field_set",
    "parse_kind",
]
