"""End-to-end tests for the logbook HTTP API."""

from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

from logbook.config import Settings
from logbook.database import Database
from logbook.service import create_app

PASSWORD = "super-secret-password"


def _register(client: TestClient, username: str = "alice", **extra) -> dict:
    response = client.post(
        "/api/register",
        json={"username": username, "password": PASSWORD, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _create_log(client: TestClient, name: str, fields=None) -> dict:
    response = client.post("/api/logs", json={"name": name, "fields": fields or []})
    assert response.status_code == 201, response.text
    return response.json()


def test_healthz_and_settings(client: TestClient) -> None:
    assert client.get("/api/healthz").json() == {"status": "ok"}
    assert client.get("/api/settings").json() == {"allow_registration": True}


def test_register_login_logout_cycle(client: TestClient) -> None:
    user = _register(client, email="alice@example.com")
    assert user["username"] == "alice"
    assert user["email"] == "alice@example.com"
    assert client.get("/api/me").json()["id"] == user["id"]

    logout = client.post("/api/logout", json={})
    assert logout.status_code == 200
    me = client.get("/api/me")
    assert me.status_code == 401
    assert me.json() == {"error": "authentication required", "code": "unauthenticated"}

    bad = client.post("/api/login", json={"username": "alice", "password": "wrong-password"})
    assert bad.status_code == 401
    assert bad.json()["error"] == "invalid username or password"

    good = client.post("/api/login", json={"username": "alice", "password": PASSWORD})
    assert good.status_code == 200, good.text
    assert client.get("/api/me").status_code == 200


def test_register_validation_and_conflicts(client: TestClient) -> None:
    _register(client)
    client.post("/api/logout", json={})

    duplicate = client.post("/api/register", json={"username": "alice", "password": PASSWORD})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "username already taken"

    short = client.post("/api/register", json={"username": "bob", "password": "short"})
    assert short.status_code == 400

    missing = client.post("/api/register", json={"username": "  ", "password": PASSWORD})
    assert missing.status_code == 400

    malformed = client.post("/api/register", json={"username": "bob"})
    assert malformed.status_code == 400
    assert malformed.json() == {"error": "invalid request body"}


def test_registration_can_be_disabled(database: Database, settings: Settings) -> None:
    app = create_app(database=database, settings=replace(settings, allow_registration=False))
    with TestClient(app) as client:
        assert client.get("/api/settings").json() == {"allow_registration": False}
        response = client.post("/api/register", json={"username": "alice", "password": PASSWORD})
        assert response.status_code == 403
        assert response.json()["error"] == "registration is currently disabled"


def test_change_email_and_password(client: TestClient) -> None:
    _register(client, "bob", email="bob@example.com")
    client.post("/api/logout", json={})
    _register(client, "alice")

    taken = client.put("/api/me/email", json={"email": "bob@example.com"})
    assert taken.status_code == 409

    changed = client.put("/api/me/email", json={"email": "alice@example.com"})
    assert changed.status_code == 200
    assert changed.json()["email"] == "alice@example.com"

    cleared = client.put("/api/me/email", json={"email": ""})
    assert cleared.json()["email"] is None

    wrong = client.put(
        "/api/me/password",
        json={"current_password": "not-it", "new_password": "another-password"},
    )
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "current password is incorrect"

    ok = client.put(
        "/api/me/password",
        json={"current_password": PASSWORD, "new_password": "another-password"},
    )
    assert ok.status_code == 200
    assert client.get("/api/me").status_code == 200

    client.post("/api/logout", json={})
    relogin = client.post("/api/login", json={"username": "alice", "password": "another-password"})
    assert relogin.status_code == 200


def test_log_routes_require_authentication(client: TestClient) -> None:
    assert client.get("/api/logs").status_code == 401
    assert client.post("/api/logs", json={"name": "Water"}).status_code == 401
    assert client.post("/api/quick-log", json={"entries": []}).status_code == 401


def test_log_crud(client: TestClient) -> None:
    _register(client)

    created = _create_log(
        client,
        "Pushups",
        [{"name": "count", "kind": "number", "required": True}],
    )
    assert created["fields"] == [{"name": "count", "kind": "number", "required": True}]

    empty = _create_log(client, "Water")
    assert empty["fields"] == []

    listing = client.get("/api/logs").json()
    assert [log["name"] for log in listing] == ["Pushups", "Water"]

    fetched = client.get(f"/api/logs/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Pushups"

    renamed = client.put(f"/api/logs/{created['id']}", json={"name": "Push-ups"})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Push-ups"
    assert renamed.json()["fields"] == created["fields"]

    deleted = client.delete(f"/api/logs/{empty['id']}")
    assert deleted.status_code == 204
    assert client.get(f"/api/logs/{empty['id']}").status_code == 404


def test_duplicate_log_names_are_scoped_to_owner(client: TestClient) -> None:
    _register(client, "alice")
    _create_log(client, "Water")

    duplicate = client.post("/api/logs", json={"name": "Water"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_name"

    other = _create_log(client, "Coffee")
    clash = client.put(f"/api/logs/{other['id']}", json={"name": "Water"})
    assert clash.status_code == 409

    client.post("/api/logout", json={})
    _register(client, "bob")
    assert client.post("/api/logs", json={"name": "Water"}).status_code == 201


def test_invalid_field_sets_are_rejected(client: TestClient) -> None:
    _register(client)

    duplicate = client.post(
        "/api/logs",
        json={
            "name": "Pushups",
            "fields": [{"name": "count", "kind": "number"}, {"name": "count", "kind": "text"}],
        },
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["code"] == "invalid_field_set"

    bad_kind = client.post(
        "/api/logs",
        json={"name": "Pushups", "fields": [{"name": "count", "kind": "date"}]},
    )
    assert bad_kind.status_code == 400

    stringly_required = client.post(
        "/api/logs",
        json={"name": "Pushups", "fields": [{"name": "count", "kind": "number", "required": "false"}]},
    )
    assert stringly_required.status_code == 400
    assert client.get("/api/logs").json() == []

    mixed_case = client.post(
        "/api/logs",
        json={"name": "Pushups", "fields": [{"name": "Count", "kind": "number"}, {"name": "count", "kind": "number"}]},
    )
    assert mixed_case.status_code == 400
    assert mixed_case.json()["code"] == "invalid_field_set"

    empty_name = client.post("/api/logs", json={"name": "  "})
    assert empty_name.status_code == 400
    assert empty_name.json()["code"] == "invalid_log_name"


def test_other_users_logs_are_not_found(client: TestClient) -> None:
    _register(client, "alice")
    log = _create_log(client, "Private")
    entry = client.post(f"/api/logs/{log['id']}/entries", json={"values": {}}).json()
    client.post("/api/logout", json={})

    _register(client, "mallory")
    assert client.get(f"/api/logs/{log['id']}").status_code == 404
    assert client.put(f"/api/logs/{log['id']}", json={"name": "Mine"}).status_code == 404
    assert client.delete(f"/api/logs/{log['id']}").status_code == 404
    assert client.get(f"/api/logs/{log['id']}/entries").status_code == 404
    assert client.post(f"/api/logs/{log['id']}/entries", json={"values": {}}).status_code == 404
    assert client.delete(f"/api/logs/{log['id']}/entries/{entry['id']}").status_code == 404


def test_pushups_scenario(client: TestClient) -> None:
    _register(client)
    log = _create_log(client, "Pushups", [{"name": "count", "kind": "number", "required": True}])

    created = client.post(f"/api/logs/{log['id']}/entries", json={"values": {"count": "25"}})
    assert created.status_code == 201, created.text
    entry = created.json()
    assert entry["values"] == {"count": 25}
    assert entry["log_id"] == log["id"]

    display = client.get(f"/api/logs/{log['id']}/entries/{entry['id']}/display")
    assert display.status_code == 200
    assert display.json() == [
        {"label": "count", "value": 25, "known": True, "required": True, "kind": "number"}
    ]


def test_entries_survive_field_changes(client: TestClient) -> None:
    _register(client)
    log = _create_log(client, "Pushups", [{"name": "count", "kind": "number", "required": True}])
    entry = client.post(f"/api/logs/{log['id']}/entries", json={"values": {"count": 25}}).json()

    updated = client.put(
        f"/api/logs/{log['id']}",
        json={"fields": [{"name": "reps", "kind": "number"}]},
    )
    assert updated.status_code == 200
    assert updated.json()["fields"] == [{"name": "reps", "kind": "number", "required": False}]

    stored = client.get(f"/api/logs/{log['id']}/entries/{entry['id']}").json()
    assert stored["values"] == {"count": 25}

    display = client.get(f"/api/logs/{log['id']}/entries/{entry['id']}/display").json()
    assert [(row["label"], row["value"], row["known"]) for row in display] == [("count", 25, False)]

    listing = client.get(f"/api/logs/{log['id']}/entries", params={"display": "true"}).json()
    assert listing[0]["display"][0]["known"] is False

    plain = client.get(f"/api/logs/{log['id']}/entries").json()
    assert plain[0]["display"] is None


def test_entry_validation_reports_every_error(client: TestClient) -> None:
    _register(client)
    log = _create_log(
        client,
        "Workout",
        [
            {"name": "a", "kind": "number", "required": True},
            {"name": "b", "kind": "text", "required": True},
        ],
    )

    response = client.post(f"/api/logs/{log['id']}/entries", json={"values": {}})
    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "validation_failed"
    assert [(error["field"], error["code"]) for error in payload["errors"]] == [
        ("a", "missing_required"),
        ("b", "missing_required"),
    ]

    wrong_type = client.post(f"/api/logs/{log['id']}/entries", json={"values": {"a": "x", "b": ""}})
    assert wrong_type.status_code == 400
    assert [error["code"] for error in wrong_type.json()["errors"]] == ["invalid_type"]


def test_optional_boolean_may_be_omitted(client: TestClient) -> None:
    _register(client)
    log = _create_log(client, "Walk", [{"name": "outside", "kind": "boolean"}])

    omitted = client.post(f"/api/logs/{log['id']}/entries", json={"values": {}})
    assert omitted.status_code == 201
    assert omitted.json()["values"] == {}

    checked = client.post(f"/api/logs/{log['id']}/entries", json={"values": {"outside": "on"}})
    assert checked.json()["values"] == {"outside": True}


def test_deleting_log_removes_entries(client: TestClient, database: Database) -> None:
    _register(client)
    log = _create_log(client, "Water")
    for _ in range(3):
        assert client.post(f"/api/logs/{log['id']}/entries", json={"values": {}}).status_code == 201
    assert len(client.get(f"/api/logs/{log['id']}/entries").json()) == 3

    assert client.delete(f"/api/logs/{log['id']}").status_code == 204

    assert database.count_entries(log["id"]) == 0
    assert client.get(f"/api/logs/{log['id']}/entries").status_code == 404


def test_delete_single_entry(client: TestClient) -> None:
    _register(client)
    log = _create_log(client, "Water")
    entry = client.post(f"/api/logs/{log['id']}/entries", json={"values": {}}).json()

    assert client.delete(f"/api/logs/{log['id']}/entries/{entry['id']}").status_code == 204
    assert client.get(f"/api/logs/{log['id']}/entries/{entry['id']}").status_code == 404
    assert client.delete(f"/api/logs/{log['id']}/entries/{entry['id']}").status_code == 404


def test_occurred_at_orders_entries(client: TestClient) -> None:
    _register(client)
    log = _create_log(client, "Water")
    client.post(
        f"/api/logs/{log['id']}/entries",
        json={"values": {}, "occurred_at": "2024-01-01T08:00:00Z"},
    )
    client.post(
        f"/api/logs/{log['id']}/entries",
        json={"values": {}, "occurred_at": "2024-03-01T08:00:00+02:00"},
    )

    listing = client.get(f"/api/logs/{log['id']}/entries").json()
    assert [entry["occurred_at"][:10] for entry in listing] == ["2024-03-01", "2024-01-01"]


def test_quick_log_reports_per_log_outcomes(client: TestClient) -> None:
    _register(client)
    water = _create_log(client, "Water")
    pushups = _create_log(client, "Pushups", [{"name": "count", "kind": "number", "required": True}])

    response = client.post(
        "/api/quick-log",
        json={
            "entries": [
                {"log_id": water["id"]},
                {"log_id": pushups["id"], "values": {}},
                {"log_id": 424242, "values": {}},
            ]
        },
    )
    assert response.status_code == 200, response.text
    results = response.json()["results"]

    assert [result["ok"] for result in results] == [True, False, False]
    assert results[0]["entry"]["log_id"] == water["id"]
    assert results[1]["errors"][0]["code"] == "missing_required"
    assert results[2]["error"] == "log not found"

    assert len(client.get(f"/api/logs/{water['id']}/entries").json()) == 1
    assert client.get(f"/api/logs/{pushups['id']}/entries").json() == []
