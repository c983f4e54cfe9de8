"""Read-time pairing of stored entry values with a log's current fields."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping

from .models import DisplayValue, FieldDefinition


def reconcile(fields: Iterable[FieldDefinition], stored: Mapping[str, Any]) -> List[DisplayValue]:
    """Return every stored value in display order.

    Values whose name matches a current definition come first, in the
    definition order, labelled with the current kind and required flag.
    Values left over from removed or renamed fields follow in their stored
    order with ``known`` set to ``False``. Values are passed through
    untouched, so a number stays a number even if the field is now text.
    """

    rows: List[DisplayValue] = []
    covered = set()
    for definition in fields:
        if definition.name in covered or definition.name not in stored:
            continue
        covered.add(definition.name)
        rows.append(
            DisplayValue(
                label=definition.name,
                value=stored[definition.name],
                known=True,
                required=definition.required,
                kind=definition.kind,
            )
        )

    for name, value in stored.items():
        if name not in covered:
            rows.append(DisplayValue(label=name, value=value, known=False))
    return rows


__all__ = ["reconcile"]
