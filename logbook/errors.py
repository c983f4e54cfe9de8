"""Error taxonomy shared by the log aggregate, validation engine and API."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional


class LogbookError(Exception):
    """Base class for every recoverable logbook error."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateName(LogbookError):
    """Another log owned by the same user already uses the name."""

    code = "duplicate_name"

    def __init__(self, name: str) -> None:
        super().__init__("a log with that name already exists")
        self.name = name


class InvalidLogName(LogbookError):
    code = "invalid_log_name"


class InvalidFieldSet(LogbookError):
    """A field definition list cannot be saved."""

    code = "invalid_field_set"


class FieldError(LogbookError):
    """Problem with a single field of a candidate value map."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


class MissingRequired(FieldError):
    code = "missing_required"

    def __init__(self, field: str) -> None:
        super().__init__(field, f"field {field!r} is required")


class InvalidType(FieldError):
    code = "invalid_type"

    def __init__(self, field: str, expected: str) -> None:
        super().__init__(field, f"field {field!r} must be a valid {expected}")
        self.expected = expected


class ValidationFailed(LogbookError):
    """Aggregate of every field error found in one candidate."""

    code = "validation_failed"

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors: List[FieldError] = list(errors)
        super().__init__("; ".join(error.message for error in self.errors) or "validation failed")

    def fields(self) -> List[str]:
        return [error.field for error in self.errors]


class NotFound(LogbookError):
    code = "not_found"

    def __init__(self, resource: str, identifier: Optional[object] = None) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.identifier = identifier


class Unauthenticated(LogbookError):
    code = "unauthenticated"

    def __init__(self, message: str = "authentication required") -> None:
        super().__init__(message)


class AccountError(LogbookError):
    """Registration or self-service account update was rejected."""

    code = "account_error"

    def __init__(self, message: str, *, conflict: bool = False) -> None:
        super().__init__(message)
        self.conflict = conflict


class StorageUnavailable(LogbookError):
    """The database could not complete the write, e.g. while locked."""

    code = "storage_unavailable"


__all__ = [
    "AccountError",
    "DuplicateName",
    "FieldError",
    "InvalidFieldSet",
    "InvalidLogName",
    "InvalidType",
    "LogbookError",
    "MissingRequired",
    "NotFound",
    "StorageUnavailable",
    "Unauthenticated",
    "ValidationFailed",
]
