"""Shared fixtures: an app on in-memory SQLite, bearer tokens per role and
in-memory stand-ins for the identity and finance HTTP clients."""
import itertools
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from erp_services.config import Settings
from erp_services.exceptions import UpstreamServiceError
from erp_services.main import create_app
from erp_services.services.notification_service import NotificationService
from erp_services.services.service_clients import get_finance_client, get_identity_client

TODAY = date(2025, 3, 10)


class FakeIdentityClient:
    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.unavailable = False

    def add_user(self, roles: List[str], email: Optional[str] = None, full_name: Optional[str] = None) -> str:
        user_id = str(uuid.uuid4())
        self.users[user_id] = {
            "id": user_id,
            "email": email or f"{user_id[:8]}@example.com",
            "full_name": full_name,
            "roles": roles,
            "is_active": True,
        }
        return user_id

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        if self.unavailable:
            raise UpstreamServiceError("Identity service is unavailable")
        return self.users.get(str(user_id))

    async def get_users_by_role(self, role: str) -> List[Dict[str, Any]]:
        if self.unavailable:
            raise UpstreamServiceError("Identity service is unavailable")
        return [user for user in self.users.values() if role in user["roles"]]


class FakeFinanceClient:
    def __init__(self):
        self.rules: Dict[str, float] = {}
        self.calls: List[str] = []
        self.unavailable = False

    async def get_pricing_rule(self, category: str) -> Optional[Dict[str, Any]]:
        self.calls.append(category)
        if self.unavailable:
            raise UpstreamServiceError("Finance service is unavailable")
        if category not in self.rules:
            return None
        return {"category": category, "markup_percentage": self.rules[category]}


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def send(self, notification) -> bool:
        self.sent.append(notification)
        return True


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret",
        enabled_services=["finance", "procurement", "project", "engineering", "identity"],
        notification_webhook_url=None,
        event_shared_secret=None,
        seed_milestone_templates=False,
        log_level="WARNING",
    )


@pytest.fixture
def identity_client():
    return FakeIdentityClient()


@pytest.fixture
def finance_client():
    return FakeFinanceClient()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def app(settings, identity_client, finance_client, notifier):
    application = create_app(settings)
    await application.state.database.create_tables()
    application.state.notifications = NotificationService([notifier])
    application.state.clock = lambda: TODAY
    application.dependency_overrides[get_identity_client] = lambda: identity_client
    application.dependency_overrides[get_finance_client] = lambda: finance_client
    yield application
    await application.state.database.dispose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def make_headers(app):
    """Authorization headers for a user holding ``roles``."""

    def factory(*roles: str, user_id: Optional[str] = None) -> Dict[str, str]:
        token = app.state.jwt_service.create_user_token(
            user_id or str(uuid.uuid4()), "tester@example.com", list(roles)
        )
        return {"Authorization": f"Bearer {token}"}

    return factory


@pytest.fixture
def admin_headers(make_headers):
    return make_headers("SYSTEM_ADMIN")


@pytest.fixture
def session_factory(app):
    return app.state.database.session_factory


@pytest.fixture
def create_project(client):
    """Create projects the way production does, through the project-won event."""
    counter = itertools.count(1)

    async def factory(**overrides) -> Dict[str, Any]:
        number = next(counter)
        body = {
            "projectName": f"Gedung Kantor {number}",
            "customerId": "CUST-001",
            "salesUserId": "sales-001",
            "salesOrderId": f"so-{number}",
            "soNumber": f"SO-2025-{number:03d}",
            "totalValue": 500000000,
        }
        body.update(overrides)
        response = await client.post("/events/project-won", json=body)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return factory


@pytest.fixture
async def managed_project(client, create_project, identity_client, make_headers):
    """A project in Planning with an assigned PM; returns (project, pm_id, pm_headers)."""
    project = await create_project()
    pm_id = identity_client.add_user(["PROJECT_MANAGER"], email="pm@example.com")
    response = await client.put(
        f"/projects/{project['id']}/assign-pm",
        json={"pm_user_id": pm_id},
        headers=make_headers("OPERATIONAL_MANAGER"),
    )
    assert response.status_code == 200, response.text
    return response.json()["data"], pm_id, make_headers("PROJECT_MANAGER", user_id=pm_id)
