"""Registration, login, user administration and employees."""
import uuid

import pytest

from erp_services.services.auth_service import hash_password, verify_password


class TestPasswordHashing:
    def test_round_trip(self):
        hashed = hash_password("rahasia123")
        assert hashed != "rahasia123"
        assert verify_password("rahasia123", hashed)
        assert not verify_password("salah", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert verify_password("rahasia123", "not-a-bcrypt-hash") is False


async def register(client, email="andi@example.com", password="rahasia123", roles=None):
    body = {"email": email, "password": password}
    if roles is not None:
        body["roles"] = roles
    response = await client.post("/auth/register", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestAuth:
    async def test_register_defaults_to_employee(self, client):
        user = await register(client, email="  Andi@Example.com ")
        assert user["email"] == "andi@example.com"
        assert user["roles"] == ["EMPLOYEE"]
        assert user["is_active"] is True
        assert "password_hash" not in user

    async def test_register_validation(self, client):
        response = await client.post("/auth/register", json={"email": "andi", "password": "rahasia123"})
        assert response.status_code == 400
        response = await client.post("/auth/register", json={"email": "andi@example.com", "password": "123"})
        assert response.status_code == 400
        response = await client.post(
            "/auth/register", json={"email": "andi@example.com", "password": "rahasia123", "roles": ["WIZARD"]}
        )
        assert response.status_code == 400

    async def test_duplicate_email(self, client):
        await register(client)
        response = await client.post("/auth/register", json={"email": "ANDI@example.com", "password": "rahasia123"})
        assert response.status_code == 409

    async def test_login_and_me(self, client):
        registered = await register(client, roles=["SALES", "EMPLOYEE"])

        response = await client.post("/auth/login", json={"email": "andi@example.com", "password": "rahasia123"})
        assert response.status_code == 200
        login = response.json()["data"]
        assert login["token_type"] == "bearer"
        assert login["expires_in"] > 0
        assert login["user"]["last_login"] is not None

        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {login['token']}"})
        assert response.json()["data"]["id"] == registered["id"]
        assert response.json()["data"]["roles"] == ["SALES", "EMPLOYEE"]

    async def test_token_roles_drive_permissions(self, client):
        await register(client, roles=["PROCUREMENT_ADMIN"])
        login = (await client.post(
            "/auth/login", json={"email": "andi@example.com", "password": "rahasia123"}
        )).json()["data"]
        response = await client.post(
            "/vendors",
            json={"vendor_name": "CV Maju", "classification": "SMALL"},
            headers={"Authorization": f"Bearer {login['token']}"},
        )
        assert response.status_code == 201

    async def test_wrong_password(self, client):
        await register(client)
        response = await client.post("/auth/login", json={"email": "andi@example.com", "password": "salah123"})
        assert response.status_code == 401
        response = await client.post("/auth/login", json={"email": "nobody@example.com", "password": "salah123"})
        assert response.status_code == 401

    async def test_inactive_user_cannot_login(self, client, admin_headers):
        user = await register(client)
        await client.put(f"/users/{user['id']}", json={"is_active": False}, headers=admin_headers)

        response = await client.post("/auth/login", json={"email": "andi@example.com", "password": "rahasia123"})
        assert response.status_code == 403

    async def test_me_for_service_token_subject(self, client, app):
        token = app.state.jwt_service.create_service_token("project")
        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404


class TestUsers:
    async def test_filter_by_role(self, client, admin_headers):
        await register(client, email="a@example.com", roles=["PROJECT_MANAGER"])
        await register(client, email="b@example.com", roles=["SALES"])
        await register(client, email="c@example.com", roles=["PROJECT_MANAGER", "EMPLOYEE"])

        response = await client.get("/users", params={"role": "PROJECT_MANAGER"}, headers=admin_headers)
        body = response.json()
        assert [user["email"] for user in body["data"]] == ["a@example.com", "c@example.com"]
        assert body["pagination"]["total"] == 2

    async def test_invalid_role_filter(self, client, admin_headers):
        response = await client.get("/users", params={"role": "WIZARD"}, headers=admin_headers)
        assert response.status_code == 400

    async def test_update_email_conflict(self, client, admin_headers):
        await register(client, email="a@example.com")
        second = await register(client, email="b@example.com")
        response = await client.put(f"/users/{second['id']}", json={"email": "a@example.com"}, headers=admin_headers)
        assert response.status_code == 409

    async def test_password_change(self, client, admin_headers):
        user = await register(client)
        await client.put(f"/users/{user['id']}", json={"password": "baru12345"}, headers=admin_headers)

        response = await client.post("/auth/login", json={"email": "andi@example.com", "password": "rahasia123"})
        assert response.status_code == 401
        response = await client.post("/auth/login", json={"email": "andi@example.com", "password": "baru12345"})
        assert response.status_code == 200

    async def test_writes_need_hr_or_admin(self, client, make_headers):
        user = await register(client)
        response = await client.put(f"/users/{user['id']}", json={"roles": ["CEO"]}, headers=make_headers("EMPLOYEE"))
        assert response.status_code == 403

        response = await client.put(f"/users/{user['id']}", json={"roles": ["SALES"]}, headers=make_headers("HR_ADMIN"))
        assert response.json()["data"]["roles"] == ["SALES"]

    async def test_delete(self, client, admin_headers):
        user = await register(client)
        assert (await client.delete(f"/users/{user['id']}", headers=admin_headers)).status_code == 200
        assert (await client.get(f"/users/{user['id']}", headers=admin_headers)).status_code == 404


@pytest.fixture
def hr_headers(make_headers):
    return make_headers("HR_ADMIN")


def employee_body(email="siti@example.com", **employee):
    data = {"full_name": "Siti Rahma", "position": "Engineer", "hire_date": "2024-07-01", "basic_salary": 9000000}
    data.update(employee)
    return {
        "email": email,
        "employee": data,
        "user": {"email": email, "password": "rahasia123", "roles": ["PROJECT_ENGINEER"]},
    }


class TestEmployees:
    async def test_create_links_user(self, client, hr_headers):
        response = await client.post("/employees", json=employee_body(), headers=hr_headers)
        assert response.status_code == 201
        employee = response.json()["data"]
        assert employee["email"] == "siti@example.com"
        assert employee["allowances"] == 0.0

        response = await client.get(f"/users/{employee['user_id']}", headers=hr_headers)
        user = response.json()["data"]
        assert user["full_name"] == "Siti Rahma"
        assert user["employee"]["position"] == "Engineer"
        assert user["roles"] == ["PROJECT_ENGINEER"]

        response = await client.post("/auth/login", json={"email": "siti@example.com", "password": "rahasia123"})
        assert response.status_code == 200

    async def test_emails_must_match(self, client, hr_headers):
        body = employee_body()
        body["user"]["email"] = "other@example.com"
        response = await client.post("/employees", json=body, headers=hr_headers)
        assert response.status_code == 400

    async def test_existing_email_creates_nothing(self, client, hr_headers):
        await register(client, email="siti@example.com")
        response = await client.post("/employees", json=employee_body(), headers=hr_headers)
        assert response.status_code == 409

        response = await client.get("/employees", headers=hr_headers)
        assert response.json()["data"] == []

    async def test_list_and_get(self, client, hr_headers):
        await client.post("/employees", json=employee_body("siti@example.com"), headers=hr_headers)
        await client.post("/employees", json=employee_body("agus@example.com", full_name="Agus Salim"), headers=hr_headers)

        response = await client.get("/employees", headers=hr_headers)
        employees = response.json()["data"]
        assert [employee["full_name"] for employee in employees] == ["Agus Salim", "Siti Rahma"]

        response = await client.get(f"/employees/{employees[0]['id']}", headers=hr_headers)
        assert response.json()["data"]["email"] == "agus@example.com"

        response = await client.get(f"/employees/{uuid.uuid4()}", headers=hr_headers)
        assert response.status_code == 404

    async def test_sales_cannot_create(self, client, make_headers):
        response = await client.post("/employees", json=employee_body(), headers=make_headers("SALES"))
        assert response.status_code == 403
