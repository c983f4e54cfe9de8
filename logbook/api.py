"""JSON API for logs, entries and quick logging."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictBool

from .database import Database
from .errors import (
    AccountError,
    DuplicateName,
    LogbookError,
    NotFound,
    Unauthenticated,
    ValidationFailed,
)
from .fields import check_field_set
from .models import DisplayValue, Entry, FieldDefinition, FieldKind, Log, QuickLogOutcome, User
from .reconcile import reconcile

logger = logging.getLogger("logbook.api")


class FieldView(BaseModel):
    name: str
    kind: str
    required: bool = False


class FieldIn(BaseModel):
    name: str
    kind: Literal["number", "text", "boolean"]
    required: StrictBool = False


class LogCreateRequest(BaseModel):
    name: str
    fields: List[FieldIn] = Field(default_factory=list)


class LogUpdateRequest(BaseModel):
    name: Optional[str] = None
    fields: Optional[List[FieldIn]] = None


class LogView(BaseModel):
    id: int
    name: str
    fields: List[FieldView]
    created_at: datetime
    updated_at: datetime


class DisplayView(BaseModel):
    label: str
    value: Any = None
    known: bool
    required: bool = False
    kind: Optional[str] = None


class EntryCreateRequest(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: Optional[datetime] = None


class EntryView(BaseModel):
    id: int
    log_id: int
    created_at: datetime
    occurred_at: datetime
    values: Dict[str, Any]
    display: Optional[List[DisplayView]] = None


class FieldErrorView(BaseModel):
    field: str
    code: str
    message: str


class QuickLogItem(BaseModel):
    log_id: int
    values: Dict[str, Any] = Field(default_factory=dict)


class QuickLogRequest(BaseModel):
    entries: List[QuickLogItem] = Field(default_factory=list)


class QuickLogResult(BaseModel):
    log_id: int
    ok: bool
    entry: Optional[EntryView] = None
    error: Optional[str] = None
    errors: List[FieldErrorView] = Field(default_factory=list)


class QuickLogResponse(BaseModel):
    results: List[QuickLogResult]


def error_response(status_code: int, message: str, **extra: object) -> JSONResponse:
    payload: Dict[str, object] = {"error": message}
    payload.update(extra)
    return JSONResponse(status_code=status_code, content=payload)


def _status_for(exc: LogbookError) -> int:
    if isinstance(exc, Unauthenticated):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, DuplicateName):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AccountError):
        return status.HTTP_409_CONFLICT if exc.conflict else status.HTTP_400_BAD_REQUEST
    return status.HTTP_400_BAD_REQUEST


def _error_payload(exc: LogbookError) -> Dict[str, object]:
    payload: Dict[str, object] = {"error": exc.message, "code": exc.code}
    if isinstance(exc, ValidationFailed):
        payload["errors"] = [error.to_dict() for error in exc.errors]
    return payload


def install_error_handlers(app: FastAPI) -> None:
    """Translate domain errors into JSON error bodies."""

    @app.exception_handler(LogbookError)
    async def handle_logbook_error(request: Request, exc: LogbookError) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content=_error_payload(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(status.HTTP_400_BAD_REQUEST, "invalid request body")


def _field_set(items: List[FieldIn]) -> Tuple[FieldDefinition, ...]:
    return check_field_set(
        FieldDefinition(name=item.name, kind=FieldKind(item.kind), required=item.required) for item in items
    )


def _log_to_view(log: Log) -> LogView:
    return LogView(
        id=log.id,
        name=log.name,
        fields=[FieldView(**definition.to_dict()) for definition in log.fields],
        created_at=log.created_at,
        updated_at=log.updated_at,
    )


def _display_to_view(row: DisplayValue) -> DisplayView:
    return DisplayView(
        label=row.label,
        value=row.value,
        known=row.known,
        required=row.required,
        kind=row.kind.value if row.kind is not None else None,
    )


def _entry_to_view(entry: Entry, log: Optional[Log] = None) -> EntryView:
    display = None
    if log is not None:
        display = [_display_to_view(row) for row in reconcile(log.fields, entry.values)]
    return EntryView(
        id=entry.id,
        log_id=entry.log_id,
        created_at=entry.created_at,
        occurred_at=entry.occurred_at,
        values=dict(entry.values),
        display=display,
    )


def _outcome_to_result(outcome: QuickLogOutcome) -> QuickLogResult:
    if outcome.ok and outcome.entry is not None:
        return QuickLogResult(log_id=outcome.log_id, ok=True, entry=_entry_to_view(outcome.entry))

    error = outcome.error
    errors: List[FieldErrorView] = []
    if isinstance(error, ValidationFailed):
        errors = [FieldErrorView(**item.to_dict()) for item in error.errors]
    message = error.message if isinstance(error, LogbookError) else str(error)
    return QuickLogResult(log_id=outcome.log_id, ok=False, error=message, errors=errors)


def register_log_routes(
    app: FastAPI,
    database: Database,
    *,
    current_user: Callable[..., User],
) -> None:
    """Expose the log, entry and quick-log endpoints under ``/api``."""

    router = APIRouter(prefix="/api")

    @router.get("/logs", response_model=List[LogView])
    async def list_logs(user: User = Depends(current_user)) -> List[LogView]:
        return [_log_to_view(log) for log in database.list_logs(user.id)]

    @router.post("/logs", response_model=LogView, status_code=status.HTTP_201_CREATED)
    async def create_log(request: LogCreateRequest, user: User = Depends(current_user)) -> LogView:
        log = database.create_log(user.id, request.name, _field_set(request.fields))
        return _log_to_view(log)

    @router.get("/logs/{log_id}", response_model=LogView)
    async def get_log(log_id: int, user: User = Depends(current_user)) -> LogView:
        return _log_to_view(database.get_log(user.id, log_id))

    @router.put("/logs/{log_id}", response_model=LogView)
    async def update_log(
        log_id: int,
        request: LogUpdateRequest,
        user: User = Depends(current_user),
    ) -> LogView:
        fields = _field_set(request.fields) if request.fields is not None else None
        log = database.update_log(user.id, log_id, name=request.name, fields=fields)
        if fields is not None:
            logger.info("User %s replaced the fields of log %s", user.id, log_id)
        return _log_to_view(log)

    @router.delete("/logs/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_log(log_id: int, user: User = Depends(current_user)) -> Response:
        database.delete_log(user.id, log_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/logs/{log_id}/entries", response_model=List[EntryView])
    async def list_entries(
        log_id: int,
        display: bool = False,
        user: User = Depends(current_user),
    ) -> List[EntryView]:
        log = database.get_log(user.id, log_id) if display else None
        entries = database.list_entries(user.id, log_id)
        return [_entry_to_view(entry, log) for entry in entries]

    @router.post(
        "/logs/{log_id}/entries",
        response_model=EntryView,
        status_code=status.HTTP_201_CREATED,
    )
    async def create_entry(
        log_id: int,
        request: EntryCreateRequest,
        user: User = Depends(current_user),
    ) -> EntryView:
        entry = database.create_entry(user.id, log_id, request.values, occurred_at=request.occurred_at)
        return _entry_to_view(entry)

    @router.get("/logs/{log_id}/entries/{entry_id}", response_model=EntryView)
    async def get_entry(log_id: int, entry_id: int, user: User = Depends(current_user)) -> EntryView:
        return _entry_to_view(database.get_entry(user.id, log_id, entry_id))

    @router.get("/logs/{log_id}/entries/{entry_id}/display", response_model=List[DisplayView])
    async def display_entry(log_id: int, entry_id: int, user: User = Depends(current_user)) -> List[DisplayView]:
        log = database.get_log(user.id, log_id)
        entry = database.get_entry(user.id, log_id, entry_id)
        return [_display_to_view(row) for row in reconcile(log.fields, entry.values)]

    @router.delete("/logs/{log_id}/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_entry(log_id: int, entry_id: int, user: User = Depends(current_user)) -> Response:
        database.delete_entry(user.id, log_id, entry_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/quick-log", response_model=QuickLogResponse)
    async def quick_log(request: QuickLogRequest, user: User = Depends(current_user)) -> QuickLogResponse:
        outcomes = database.quick_log(user.id, [(item.log_id, item.values) for item in request.entries])
        return QuickLogResponse(results=[_outcome_to_result(outcome) for outcome in outcomes])

    app.include_router(router)


__all__ = ["error_response", "install_error_handlers", "register_log_routes"]
