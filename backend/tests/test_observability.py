"""
Tests for logging, Sentry scrubbing, configuration status and health endpoints.

Run with: pytest tests/test_observability.py -v
"""

import json
import logging
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from config import validate_environment
from logging_config import JSONFormatter, RequestContextFilter, set_request_context, clear_request_context
from sentry_integration import filter_sensitive_data, REDACTED
from server import app


def _format(message, **extra):
    record = logging.LogRecord("provisioning", logging.INFO, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    RequestContextFilter().filter(record)
    return json.loads(JSONFormatter(service_name="test").format(record))


class TestJSONFormatter:

    def test_context_and_extras(self):
        set_request_context(request_id="req-1")
        set_request_context(user_id="user-1", organisation_id="org-1")
        try:
            line = _format("User created", event="user_created", target_user_id="u-2")
        finally:
            clear_request_context()

        assert line["message"] == "User created"
        assert line["service"] == "test"
        assert line["request_id"] == "req-1"
        assert line["user_id"] == "user-1"
        assert line["organisation_id"] == "org-1"
        assert line["extra"] == {"event": "user_created", "target_user_id": "u-2"}

    def test_sensitive_extras_are_redacted(self):
        line = _format("x", payload={"email": "a@b.com", "password": "hunter2"})
        assert line["extra"]["payload"] == {"email": "a@b.com", "password": "[redacted]"}

    def test_cleared_context_is_omitted(self):
        clear_request_context()
        line = _format("x")
        assert "request_id" not in line


def test_sentry_events_are_scrubbed():
    event = {
        "request": {"headers": {"Authorization": "Bearer abc", "Accept": "*/*"}, "data": {"personnummer": "19900101-1234"}},
        "extra": {"service_role_key": "k", "user_id": "u"},
        "breadcrumbs": {"values": [{"data": {"access_token": "t"}}]},
    }

    scrubbed = filter_sensitive_data(event, {})

    assert scrubbed["request"]["headers"] == {"Authorization": REDACTED, "Accept": "*/*"}
    assert scrubbed["request"]["data"]["personnummer"] == REDACTED
    assert scrubbed["extra"] == {"service_role_key": REDACTED, "user_id": "u"}
    assert scrubbed["breadcrumbs"]["values"][0]["data"]["access_token"] == REDACTED


def test_environment_status_never_exposes_values():
    status = validate_environment()

    assert status["variables"]["SUPABASE_SERVICE_ROLE_KEY"] == "set"
    assert "service-role-test-key" not in json.dumps(status)


class TestHealthEndpoints:

    def test_liveness(self):
        response = TestClient(app).get("/api/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"
        assert response.headers["X-Request-ID"]

    def test_request_id_is_echoed(self):
        response = TestClient(app).get("/api/health/live", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    def test_health_503_when_database_down(self):
        with patch("routers.health.check_connection", AsyncMock(return_value=False)):
            response = TestClient(app).get("/api/health")
        assert response.status_code == 503

    def test_readiness_when_database_up(self):
        with patch("routers.health.check_connection", AsyncMock(return_value=True)):
            response = TestClient(app).get("/api/health/ready")
        assert response.json()["status"] == "ready"
