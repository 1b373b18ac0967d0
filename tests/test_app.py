"""
Application-level behaviour: health check, middleware, error envelopes and
role-based access control.
"""
import pytest
from fastapi import APIRouter, Depends, FastAPI
from fastapi.testclient import TestClient

from core.auth import require_role
from core.config import Settings, settings, validate_settings
from core.csrf import CSRFMiddleware
from core.database import Database, build_engine
from core.exceptions import register_exception_handlers
from core.session import AuthContext, CSRF_COOKIE, TOKEN_COOKIE, issue_session
from main import create_app

from conftest import signup_payload


class TestHealth:

    def test_healthy(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Iron Forge API is running"
        assert body["db"]["healthy"] is True
        assert body["db"]["error"] is None
        assert body["ts"]

    def test_database_down(self, tmp_path):
        """The API still starts and reports 503 when the database is unreachable."""
        unreachable = Database(build_engine(f"sqlite:///{tmp_path / 'missing' / 'forge.db'}"))

        with TestClient(create_app(database=unreachable)) as c:
            response = c.get("/api/health")

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "API running, DB unavailable"
        assert body["db"]["healthy"] is False
        assert body["db"]["error"]
        unreachable.dispose()


class TestSecurityHeaders:

    def test_headers_present(self, client):
        response = client.get("/api/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "Strict-Transport-Security" not in response.headers
        assert "X-Process-Time" in response.headers

    def test_headers_on_errors(self, client):
        response = client.get("/api/athlete/profile")
        assert response.status_code == 401
        assert response.headers["X-Frame-Options"] == "DENY"


class TestErrorEnvelope:

    def test_unknown_route(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found"}

    def test_method_not_allowed(self, client):
        response = client.patch("/api/health")
        assert response.status_code == 405
        assert response.json()["success"] is False

    def test_malformed_json(self, client):
        response = client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_unauthorized_has_www_authenticate(self, client):
        response = client.get("/api/auth/me")
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error_code"] == "UNAUTHORIZED"


class TestCors:

    def test_preflight_from_allowed_origin(self, client):
        response = client.options(
            "/api/auth/login",
            headers={
                "Origin": "http://localhost:5500",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "x-csrf-token",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5500"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_unknown_origin_not_allowed(self, client):
        response = client.get("/api/health", headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers

    def test_extra_origins_from_settings(self):
        config = Settings(
            SECRET_KEY="x" * 32,
            CLIENT_URLS="https://ironforge.app, https://www.ironforge.app,http://localhost:5500",
        )
        origins = config.allowed_origins()
        assert origins[-2:] == ["https://ironforge.app", "https://www.ironforge.app"]
        assert origins.count("http://localhost:5500") == 1


class TestCsrfMiddleware:

    @pytest.fixture
    def cookie_client(self, client):
        body = client.post("/api/auth/signup", json=signup_payload()).json()
        return client, body["csrfToken"], body["token"]

    def test_missing_header_rejected(self, cookie_client):
        c, _, _ = cookie_client
        response = c.post("/api/athlete/stats", json={"stat_name": "bench", "stat_value": "100"})
        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "message": "CSRF validation failed.",
            "error_code": "FORBIDDEN",
        }

    def test_wrong_header_rejected(self, cookie_client):
        c, _, _ = cookie_client
        response = c.delete("/api/athlete/stats/1", headers={"x-csrf-token": "0" * 48})
        assert response.status_code == 403

    def test_matching_header_accepted(self, cookie_client):
        c, csrf, _ = cookie_client
        response = c.post(
            "/api/athlete/stats",
            json={"stat_name": "bench", "stat_value": "100"},
            headers={"x-csrf-token": csrf},
        )
        assert response.status_code == 201

    def test_bearer_bypasses_check_even_with_cookies(self, cookie_client):
        c, _, token = cookie_client
        response = c.post(
            "/api/athlete/stats",
            json={"stat_name": "bench", "stat_value": "100"},
            headers={"Authorization": f"Bearer {token}", "x-csrf-token": "wrong"},
        )
        assert response.status_code == 201

    def test_safe_methods_pass(self, cookie_client):
        c, _, _ = cookie_client
        assert c.get("/api/athlete/profile").status_code == 200

    def test_check_runs_before_routing(self):
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.post("/anything")
        def anything():
            return {"ok": True}

        with TestClient(app, cookies={TOKEN_COOKIE: "t", CSRF_COOKIE: "abc"}) as c:
            assert c.post("/anything").status_code == 403
            assert c.post("/anything", headers={"x-csrf-token": "abc"}).status_code == 200


class TestRequireRole:

    @pytest.fixture
    def role_client(self):
        app = FastAPI()
        register_exception_handlers(app)
        router = APIRouter()

        @router.get("/coach-only")
        def coach_only(user: AuthContext = Depends(require_role(["coach", "admin"]))):
            return {"user_id": user.user_id}

        app.include_router(router)
        with TestClient(app) as c:
            yield c

    def _headers(self, role):
        token = issue_session(AuthContext(user_id=7, email="r@example.com", role=role)).token
        return {"Authorization": f"Bearer {token}"}

    def test_allowed_role(self, role_client):
        response = role_client.get("/coach-only", headers=self._headers("coach"))
        assert response.status_code == 200
        assert response.json() == {"user_id": 7}

    def test_forbidden_role(self, role_client):
        response = role_client.get("/coach-only", headers=self._headers("athlete"))
        assert response.status_code == 403
        assert response.json()["message"] == "Insufficient permissions."

    def test_unauthenticated(self, role_client):
        assert role_client.get("/coach-only").status_code == 401


class TestSettings:

    def test_short_secret_rejected(self):
        with pytest.raises(ValueError):
            validate_settings(Settings(SECRET_KEY="too-short"))

    def test_create_app_checks_secret(self, database, monkeypatch):
        monkeypatch.setattr(settings, "SECRET_KEY", "too-short")
        with pytest.raises(ValueError):
            create_app(database=database)

    def test_database_url_override(self):
        config = Settings(SECRET_KEY="x" * 32, DATABASE_URL="sqlite:///./dev.db")
        assert config.database_url == "sqlite:///./dev.db"

    def test_database_url_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        config = Settings(
            SECRET_KEY="x" * 32,
            DATABASE_URL=None,
            POSTGRES_USER="forge",
            POSTGRES_PASSWORD="pw",
            POSTGRES_HOST="db",
            POSTGRES_PORT=5433,
            POSTGRES_DB="athletes",
        )
        assert config.database_url == "postgresql://forge:pw@db:5433/athletes"

    def test_session_max_age(self):
        assert settings.session_max_age_seconds == 604800


class TestUnhandledErrors:

    def _app_with_failing_route(self, database):
        app = create_app(database=database)

        @app.get("/api/boom")
        def boom():
            raise RuntimeError("kaboom")

        return app

    def test_development_shows_message(self, database):
        with TestClient(self._app_with_failing_route(database), raise_server_exceptions=False) as c:
            response = c.get("/api/boom")
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "kaboom"}

    def test_production_hides_message(self, database, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")
        with TestClient(self._app_with_failing_route(database), raise_server_exceptions=False) as c:
            response = c.get("/api/boom")
        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error."


class TestLogging:

    def test_json_formatter_includes_extra_fields(self):
        import json
        import logging

        from core.logging import JSONFormatter

        record = logging.LogRecord("routers.auth", logging.INFO, __file__, 10, "Signup ok", None, None)
        record.extra_fields = {"path": "/api/auth/signup", "status_code": 201}

        line = json.loads(JSONFormatter().format(record))
        assert line["level"] == "INFO"
        assert line["logger"] == "routers.auth"
        assert line["message"] == "Signup ok"
        assert line["path"] == "/api/auth/signup"
        assert line["status_code"] == 201

    def test_credentials_are_redacted(self):
        import logging

        from core.logging import TextFormatter

        record = logging.LogRecord("routers.auth", logging.INFO, __file__, 10, "Login", None, None)
        record.extra_fields = {"path": "/api/auth/login", "password": "IronForge2024"}

        line = TextFormatter().format(record)
        assert "IronForge2024" not in line
        assert "password=[redacted]" in line
        assert "path=/api/auth/login" in line
