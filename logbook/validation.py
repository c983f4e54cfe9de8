"""Validation of candidate entry values against a log's field definitions."""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .errors import FieldError, InvalidType, MissingRequired, ValidationFailed
from .models import FieldDefinition, FieldKind

Number = Union[int, float]

_FALSE_STRINGS = {"", "0", "false", "no", "off"}


def _is_absent(definition: FieldDefinition, raw: Any) -> bool:
    if raw is None:
        return True
    # Number inputs on a form submit "" when left blank.
    if definition.kind is FieldKind.NUMBER and isinstance(raw, str) and not raw.strip():
        return True
    return False


def coerce_number(raw: Any) -> Optional[Number]:
    """Return ``raw`` as a finite number, or ``None`` when it is not one."""

    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        value = raw
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(value):
        return None
    if value.is_integer():
        return int(value)
    return value


def coerce_boolean(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() not in _FALSE_STRINGS
    return bool(raw)


def validate(fields: Iterable[FieldDefinition], candidate: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Check ``candidate`` against ``fields`` and return the value map to store.

    Every definition is checked in declared order and all problems are
    collected before :class:`ValidationFailed` is raised. Optional fields that
    are absent are left out of the result rather than stored as null, and a
    missing boolean is never an error since an unchecked box is a legal
    value. Keys without a matching definition are ignored.
    """

    values = candidate or {}
    errors: List[FieldError] = []
    validated: Dict[str, Any] = {}

    for definition in fields:
        raw = values.get(definition.name)
        if _is_absent(definition, raw):
            if definition.required and definition.kind is not FieldKind.BOOLEAN:
                errors.append(MissingRequired(definition.name))
            continue

        if definition.kind is FieldKind.NUMBER:
            number = coerce_number(raw)
            if number is None:
                errors.append(InvalidType(definition.name, "number"))
                continue
            validated[definition.name] = number
        elif definition.kind is FieldKind.TEXT:
            if not isinstance(raw, str):
                errors.append(InvalidType(definition.name, "text"))
                continue
            validated[definition.name] = raw
        else:
            validated[definition.name] = coerce_boolean(raw)

    if errors:
        raise ValidationFailed(errors)
    return validated


__all__ = ["coerce_boolean", "coerce_number", "validate"]
