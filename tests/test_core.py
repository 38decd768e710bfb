"""Tests for app-level wiring: health routes, JSON errors, headers, CORS."""

from unittest.mock import patch


class TestHealth:
    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "service": "studybuddy-backend"}

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["database"] == "connected"
        assert data["environment"] == "testing"
        assert data["uptime_seconds"] >= 0
        assert data["timestamp"]

    def test_health_reports_disconnected(self, client):
        with patch("database.is_connected", return_value=False):
            data = client.get("/api/health").get_json()
        assert data["database"] == "disconnected"

    def test_db_probe_masks_secrets(self, client):
        resp = client.get("/api/test-db")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["database"] == "connected"
        assert data["env"]["JWT_SECRET"] == "set"
        assert data["env"]["HF_TOKEN"] == "not set"
        assert "test-jwt-secret" not in resp.get_data(as_text=True)

    def test_live(self, client):
        assert client.get("/live").get_json() == {"status": "alive"}


class TestErrors:
    def test_unknown_route_is_json(self, client):
        resp = client.get("/api/does-not-exist")
        assert resp.status_code == 404
        assert "message" in resp.get_json()

    def test_method_not_allowed_is_json(self, client):
        resp = client.put("/api/health")
        assert resp.status_code == 405
        assert "message" in resp.get_json()

    def test_unhandled_error_is_500(self, client, room):
        with patch("blueprints.rooms.RoomDB.get", side_effect=RuntimeError("kaboom")):
            resp = client.get(f"/api/rooms/{room}")
        assert resp.status_code == 500
        assert resp.get_json() == {"message": "Server error"}


class TestHeaders:
    def test_security_headers(self, client):
        resp = client.get("/")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in resp.headers

    def test_request_id_echoed(self, client):
        resp = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    def test_cors_allows_dev_frontend(self, client):
        resp = client.options("/api/health", headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        })
        assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:5173"

    def test_production_origins_are_listed(self):
        from extensions import cors_origins
        origins = cors_origins({
            "ENV_NAME": "production",
            "CORS_ORIGINS": ["http://localhost:5173"],
            "FRONTEND_URL": "https://studybuddy.example/",
        })
        assert "http://localhost:5173" in origins
        assert "https://studybuddy.example" in origins
        assert "*" not in origins


class TestSQLInjection:
    """Parameterised queries keep hostile input inert."""

    def test_login_email(self, client):
        resp = client.post("/api/auth/login", json={"email": "' OR 1=1 --", "password": "x"})
        assert resp.status_code == 401

    def test_room_id(self, client, room):
        resp = client.get("/api/rooms/x' OR '1'='1")
        assert resp.status_code == 404
        assert client.get(f"/api/rooms/{room}").status_code == 200
