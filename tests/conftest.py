from __future__ import annotations

import pytest

from cache_layer import cache_clear
from db import SessionLocal


@pytest.fixture()
def app_client(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'hrflow_test.db'}")
    monkeypatch.setenv("DEBUG_ERROR_DETAILS", "1")

    from app import create_app

    cache_clear()
    app = create_app()
    app.config["TESTING"] = True
    yield app, app.test_client()
    cache_clear()


@pytest.fixture()
def db(app_client):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def cfg(app_client):
    app, _client = app_client
    return app.config["CFG"]
