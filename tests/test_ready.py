"""
Tests for /health, /ready and /version.
"""
from __future__ import annotations

from unittest.mock import patch


def test_ready_ok(app_client):
    """Test /ready returns ok when the database answers."""
    _app, client = app_client

    res = client.get("/ready")
    assert res.status_code == 200

    body = res.get_json()
    assert body["status"] == "ok"
    assert body["checks"]["db"] == "ok"


def test_ready_db_down(app_client):
    """Test /ready returns 503 when the database ping fails."""
    _app, client = app_client

    with patch("app.routes.core.ping_db", return_value=False):
        res = client.get("/ready")
        assert res.status_code == 503
        body = res.get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["db"] == "error"


def test_health_and_version(app_client):
    app, client = app_client

    health = client.get("/health").get_json()
    assert health["status"] == "ok"
    assert "cache" in health

    version = client.get("/version").get_json()
    assert version["version"] == app.config["CFG"].APP_VERSION
    assert version["env"] == "test"
