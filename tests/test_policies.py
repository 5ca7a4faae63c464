"""Role table and token handling."""
from datetime import timedelta

import pytest

from erp_services.config import Settings
from erp_services.policies import POLICY_TABLE, Role, is_allowed
from erp_services.services.jwt_service import JWTService


class TestPolicyTable:
    @pytest.mark.parametrize("role", ["CEO", "SYSTEM_ADMIN"])
    def test_superusers_pass_every_check(self, role):
        for action, resource in POLICY_TABLE:
            assert is_allowed([role], action, resource)

    def test_finance_admin_writes_journals_but_not_vendors(self):
        assert is_allowed(["FINANCE_ADMIN"], "write", "journal")
        assert not is_allowed(["FINANCE_ADMIN"], "write", "vendor")

    def test_any_held_role_is_enough(self):
        assert is_allowed(["EMPLOYEE", "PROCUREMENT_ADMIN"], "write", "vendor")

    def test_unknown_action_is_denied(self):
        assert not is_allowed(["FINANCE_ADMIN"], "launch", "rocket")

    def test_table_only_names_known_roles(self):
        for roles in POLICY_TABLE.values():
            assert all(isinstance(role, Role) for role in roles)


class TestJWTService:
    @pytest.fixture
    def jwt_service(self):
        return JWTService(Settings(jwt_secret_key="unit-secret", database_url="sqlite+aiosqlite:///:memory:"))

    def test_user_token_round_trip(self, jwt_service):
        token = jwt_service.create_user_token("42", "a@example.com", ["SALES"])
        payload = jwt_service.verify_token(token)
        assert payload["sub"] == "42"
        assert payload["roles"] == ["SALES"]

    def test_expired_token_is_rejected(self, jwt_service):
        token = jwt_service.create_access_token({"sub": "42"}, expires_delta=timedelta(seconds=-5))
        assert jwt_service.verify_token(token) is None

    def test_token_signed_with_other_secret_is_rejected(self, jwt_service):
        other = JWTService(Settings(jwt_secret_key="other", database_url="sqlite+aiosqlite:///:memory:"))
        assert jwt_service.verify_token(other.create_user_token("42", None, [])) is None

    def test_service_token_acts_as_system_admin(self, jwt_service):
        payload = jwt_service.verify_token(jwt_service.create_service_token("project"))
        assert payload["sub"] == "service:project"
        assert payload["roles"] == ["SYSTEM_ADMIN"]


class TestTokenDependency:
    async def test_missing_header(self, client):
        response = await client.get("/vendors")
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Authorization header missing",
            "error": "UNAUTHORIZED",
        }

    async def test_garbage_token(self, client):
        response = await client.get("/vendors", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
