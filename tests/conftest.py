from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from logbook.config import Settings
from logbook.database import Database
from logbook.service import create_app


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_path=tmp_path / "logbook.sqlite3",
        allow_registration=True,
        secure_cookies=False,
    )


@pytest.fixture()
def database(settings: Settings) -> Database:
    db = Database(settings.database_path)
    db.initialize()
    return db


@pytest.fixture()
def client(database: Database, settings: Settings):
    app = create_app(database=database, settings=settings)
    with TestClient(app) as test_client:
        yield test_client
