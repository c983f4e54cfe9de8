"""Domain models for users, logs, field definitions and entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class FieldKind(str, Enum):
    """Value kinds a log field may declare."""

    NUMBER = "number"
    TEXT = "text"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the logbook database."""

    id: int
    username: str
    email: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class FieldDefinition:
    """A named, typed and optionally required attribute of a log."""

    name: str
    kind: FieldKind
    required: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "kind": self.kind.value, "required": self.required}


@dataclass(frozen=True)
class Log:
    """A user-defined tracker with an ordered list of field definitions."""

    id: int
    owner_id: int
    name: str
    fields: Tuple[FieldDefinition, ...]
    created_at: datetime
    updated_at: datetime

    def field(self, name: str) -> Optional[FieldDefinition]:
        for definition in self.fields:
            if definition.name == name:
                return definition
        return None


@dataclass(frozen=True)
class Entry:
    """An immutable snapshot of field values recorded against a log."""

    id: int
    log_id: int
    values: Mapping[str, Any]
    created_at: datetime
    occurred_at: datetime


@dataclass(frozen=True)
class DisplayValue:
    """One row of a reconciled entry ready for display."""

    label: str
    value: Any
    known: bool
    required: bool = False
    kind: Optional[FieldKind] = None


@dataclass
class QuickLogOutcome:
    """Result of one log's entry creation within a quick-log request."""

    log_id: int
    entry: Optional[Entry] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = [
    "DisplayValue",
    "Entry",
    "FieldDefinition",
    "FieldKind",
    "Log",
    "QuickLogOutcome",
    "User",
]
