"""Application factory, configuration and the error envelope."""
import pytest
from httpx import ASGITransport, AsyncClient

from erp_services.config import Settings
from erp_services.main import create_app
from erp_services.responses import build_pagination


class TestSettings:
    def test_overrides(self):
        settings = Settings(port=9000, enabled_services=["finance"])
        assert settings.port == 9000
        assert settings.enabled_services == ["finance"]

    def test_unknown_setting_is_rejected(self):
        with pytest.raises(AttributeError):
            Settings(no_such_setting=True)

    def test_unknown_service_is_rejected(self):
        with pytest.raises(ValueError, match="payroll"):
            Settings(enabled_services=["finance", "payroll"])

    def test_environment_is_read(self, monkeypatch):
        monkeypatch.setenv("ENABLED_SERVICES", "identity, project")
        monkeypatch.setenv("DEFAULT_MARKUP_PERCENTAGE", "35")
        settings = Settings()
        assert settings.enabled_services == ["identity", "project"]
        assert settings.default_markup_percentage == 35.0


class TestPagination:
    def test_total_pages_round_up(self):
        pagination = build_pagination(page=2, limit=10, total=25)
        assert pagination.totalPages == 3
        assert pagination.hasNext is True
        assert pagination.hasPrev is True

    def test_empty_collection(self):
        pagination = build_pagination(page=1, limit=10, total=0)
        assert pagination.totalPages == 0
        assert pagination.hasNext is False


class TestApplication:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "finance" in response.json()["services"]

    async def test_disabled_service_routes_are_absent(self, settings):
        settings.enabled_services = ["identity"]
        app = create_app(settings)
        await app.state.database.create_tables()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/vendors")
            assert response.status_code == 404
            assert response.json()["success"] is False
            assert response.json()["error"] == "HTTP_404"

            response = await client.get("/")
            assert response.json()["services"] == ["identity"]
        await app.state.database.dispose()

    async def test_validation_errors_use_envelope(self, client, admin_headers):
        response = await client.post("/vendors", json={}, headers=admin_headers)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]

    async def test_unhandled_errors_hide_internals(self, app):
        @app.get("/explode")
        async def explode():
            raise RuntimeError("database password is hunter2")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/explode")
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error", "error": "INTERNAL_ERROR"}
