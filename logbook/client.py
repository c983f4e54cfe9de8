"""HTTP client for talking to a remote logbook service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .errors import Unauthenticated
from .fields import field_from_dict
from .models import Entry, FieldDefinition, Log, User

logger = logging.getLogger("logbook.client")

_DEFAULT_TIMEOUT = 10.0


class TransportError(Exception):
    """A request reached the service but did not succeed."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class Transport:
    """Thin JSON wrapper around :class:`httpx.Client`.

    Successful responses return the decoded JSON body (``None`` for empty
    bodies). A ``401`` means there is no session and also returns ``None``.
    Any other non-success status raises :class:`TransportError` carrying the
    service's ``error`` message.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.Client | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        if client is None:
            if not base_url:
                raise ValueError("Either base_url or client must be provided")
            client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self._client = client

    @property
    def client(self) -> httpx.Client:
        return self._client

    def close(self) -> None:
        self._client.close()

    def get(self, path: str) -> Any:
        return self._request("GET", path)

    def post(self, path: str, body: Any = None) -> Any:
        return self._request("POST", path, body)

    def put(self, path: str, body: Any = None) -> Any:
        return self._request("PUT", path, body)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    def _request(self, method: str, path: str, body: Any = None) -> Any:
        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        response = self._client.request(method, path, **kwargs)

        if response.status_code == 401:
            return None
        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        message = _error_message(response)
        logger.debug("%s %s failed with %s: %s", method, path, response.status_code, message)
        raise TransportError(response.status_code, message)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, Mapping) and payload.get("error"):
        return str(payload["error"])
    return "Request failed"


def _parse_datetime(value: object) -> datetime:
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def user_from_json(data: Mapping[str, Any]) -> User:
    return User(
        id=int(data["id"]),
        username=str(data["username"]),
        email=data.get("email"),
        created_at=_parse_datetime(data["created_at"]),
    )


def log_from_json(data: Mapping[str, Any], owner_id: int = 0) -> Log:
    return Log(
        id=int(data["id"]),
        owner_id=owner_id,
        name=str(data["name"]),
        fields=tuple(field_from_dict(item) for item in data.get("fields") or []),
        created_at=_parse_datetime(data["created_at"]),
        updated_at=_parse_datetime(data["updated_at"]),
    )


def entry_from_json(data: Mapping[str, Any]) -> Entry:
    return Entry(
        id=int(data["id"]),
        log_id=int(data["log_id"]),
        values=dict(data.get("values") or {}),
        created_at=_parse_datetime(data["created_at"]),
        occurred_at=_parse_datetime(data.get("occurred_at") or data["created_at"]),
    )


class LogbookClient:
    """Typed access to the logbook HTTP API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._user: Optional[User] = None

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    def current_user(self) -> Optional[User]:
        return self._user

    def refresh(self) -> Optional[User]:
        data = self._transport.get("/api/me")
        self._user = user_from_json(data) if data else None
        return self._user

    def settings(self) -> Dict[str, Any]:
        return dict(self._transport.get("/api/settings") or {})

    def register(self, username: str, password: str, email: str | None = None) -> User:
        body: Dict[str, Any] = {"username": username, "password": password}
        if email:
            body["email"] = email
        self._user = user_from_json(self._require(self._transport.post("/api/register", body)))
        return self._user

    def login(self, username: str, password: str) -> Optional[User]:
        data = self._transport.post("/api/login", {"username": username, "password": password})
        self._user = user_from_json(data) if data else None
        return self._user

    def logout(self) -> None:
        self._transport.post("/api/logout", {})
        self._user = None

    def change_email(self, email: str | None) -> User:
        self._user = user_from_json(self._require(self._transport.put("/api/me/email", {"email": email or None})))
        return self._user

    def change_password(self, current_password: str, new_password: str) -> None:
        self._transport.put(
            "/api/me/password",
            {"current_password": current_password, "new_password": new_password},
        )

    # ------------------------------------------------------------------
    # Logs and entries
    # ------------------------------------------------------------------
    def list_logs(self) -> List[Log]:
        data = self._require(self._transport.get("/api/logs"))
        return [log_from_json(item, self._owner_id()) for item in data]

    def create_log(self, name: str, fields: Sequence[FieldDefinition] = ()) -> Log:
        body = {"name": name, "fields": [definition.to_dict() for definition in fields]}
        return log_from_json(self._require(self._transport.post("/api/logs", body)), self._owner_id())

    def get_log(self, log_id: int) -> Log:
        return log_from_json(self._require(self._transport.get(f"/api/logs/{log_id}")), self._owner_id())

    def update_log(
        self,
        log_id: int,
        *,
        name: str | None = None,
        fields: Sequence[FieldDefinition] | None = None,
    ) -> Log:
        body: Dict[str, Any] = {}
        if name is not None:
            body["name"] = name
        if fields is not None:
            body["fields"] = [definition.to_dict() for definition in fields]
        return log_from_json(self._require(self._transport.put(f"/api/logs/{log_id}", body)), self._owner_id())

    def delete_log(self, log_id: int) -> None:
        self._transport.delete(f"/api/logs/{log_id}")

    def list_entries(self, log_id: int) -> List[Entry]:
        return [entry_from_json(item) for item in self._require(self._transport.get(f"/api/logs/{log_id}/entries"))]

    def create_entry(self, log_id: int, values: Mapping[str, Any]) -> Entry:
        data = self._require(self._transport.post(f"/api/logs/{log_id}/entries", {"values": dict(values)}))
        return entry_from_json(data)

    def delete_entry(self, log_id: int, entry_id: int) -> None:
        self._transport.delete(f"/api/logs/{log_id}/entries/{entry_id}")

    def quick_log(self, requests: Mapping[int, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        body = {
            "entries": [
                {"log_id": log_id, "values": dict(values)} for log_id, values in requests.items()
            ]
        }
        data = self._require(self._transport.post("/api/quick-log", body))
        return list(data.get("results", []))

    def _owner_id(self) -> int:
        return self._user.id if self._user else 0

    def _require(self, data: Any) -> Any:
        if data is None:
            self._user = None
            raise Unauthenticated()
        return data


__all__ = [
    "LogbookClient",
    "Transport",
    "TransportError",
    "entry_from_json",
    "log_from_json",
    "user_from_json",
]
