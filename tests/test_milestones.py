"""Milestone templates and project milestones."""
import uuid
from datetime import date

import pytest

from erp_services.models.project_models import MilestoneDefinition
from erp_services.services.milestone_service import DEFAULT_TEMPLATES, layout_milestones, seed_milestone_templates


class TestLayout:
    def test_back_to_back_without_overlap(self):
        slots = layout_milestones(
            [MilestoneDefinition(name="Survey", duration_days=5), MilestoneDefinition(name="Install", duration_days=10)],
            date(2025, 1, 1),
        )
        assert [(slot.start_date, slot.end_date) for slot in slots] == [
            (date(2025, 1, 1), date(2025, 1, 6)),
            (date(2025, 1, 7), date(2025, 1, 17)),
        ]

    def test_accepts_stored_dicts_and_default_duration(self):
        slots = layout_milestones([{"name": "Kickoff"}], date(2025, 1, 1))
        assert slots[0].end_date == date(2025, 1, 8)

    def test_zero_duration_is_a_single_day(self):
        slots = layout_milestones([{"name": "Sign off", "duration_days": 0}], date(2025, 1, 1))
        assert slots[0].start_date == slots[0].end_date


class TestSeeding:
    async def test_seeding_is_idempotent(self, session_factory):
        async with session_factory() as session:
            assert await seed_milestone_templates(session) == len(DEFAULT_TEMPLATES)
        async with session_factory() as session:
            assert await seed_milestone_templates(session) == 0


@pytest.fixture
async def template(client, make_headers):
    response = await client.post(
        "/templates",
        json={
            "template_name": "Instalasi Panel",
            "project_type": "Electrical",
            "milestones": [
                {"name": "Survey", "duration_days": 5, "description": "Cek lokasi"},
                {"name": "Instalasi", "duration_days": 10},
            ],
        },
        headers=make_headers("OPERATIONAL_MANAGER"),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestTemplates:
    async def test_list_by_project_type(self, client, template, admin_headers):
        response = await client.get("/templates", params={"project_type": "Electrical"}, headers=admin_headers)
        assert [item["template_name"] for item in response.json()["data"]] == ["Instalasi Panel"]

        response = await client.get("/templates", params={"project_type": "IT System"}, headers=admin_headers)
        assert response.json()["data"] == []

    async def test_get(self, client, template, admin_headers):
        response = await client.get(f"/templates/{template['id']}", headers=admin_headers)
        assert response.json()["data"]["milestones"][0] == {
            "name": "Survey", "duration_days": 5, "description": "Cek lokasi",
        }

    async def test_duplicate_name(self, client, template, admin_headers):
        response = await client.post(
            "/templates",
            json={"template_name": "Instalasi Panel", "milestones": [{"name": "X"}]},
            headers=admin_headers,
        )
        assert response.status_code == 409

    async def test_empty_template_is_rejected(self, client, admin_headers):
        response = await client.post("/templates", json={"template_name": "Kosong", "milestones": []}, headers=admin_headers)
        assert response.status_code == 400

    async def test_sales_cannot_create(self, client, make_headers):
        response = await client.post(
            "/templates", json={"template_name": "X", "milestones": [{"name": "X"}]}, headers=make_headers("SALES")
        )
        assert response.status_code == 403


class TestApplyTemplate:
    async def test_milestones_start_today(self, client, managed_project, template):
        project, _, pm_headers = managed_project
        response = await client.post(
            f"/projects/{project['id']}/milestones/apply-template",
            json={"template_id": template["id"]},
            headers=pm_headers,
        )
        assert response.status_code == 201
        milestones = response.json()["data"]
        assert [(m["name"], m["start_date"], m["end_date"], m["status"]) for m in milestones] == [
            ("Survey", "2025-03-10", "2025-03-15", "PLANNED"),
            ("Instalasi", "2025-03-16", "2025-03-26", "PLANNED"),
        ]

        response = await client.get(f"/projects/{project['id']}", headers=pm_headers)
        detail = response.json()["data"]
        assert [m["name"] for m in detail["milestones"]] == ["Survey", "Instalasi"]
        assert any(a["description"] == "Applied milestone template: Instalasi Panel" for a in detail["activities"])

    async def test_only_assigned_pm(self, client, managed_project, template, make_headers):
        project, _, _ = managed_project
        response = await client.post(
            f"/projects/{project['id']}/milestones/apply-template",
            json={"template_id": template["id"]},
            headers=make_headers("PROJECT_MANAGER"),
        )
        assert response.status_code == 403

        response = await client.get(f"/projects/{project['id']}/milestones", headers=make_headers("EMPLOYEE"))
        assert response.json()["data"] == []

    async def test_unknown_template(self, client, managed_project):
        project, _, pm_headers = managed_project
        response = await client.post(
            f"/projects/{project['id']}/milestones/apply-template",
            json={"template_id": str(uuid.uuid4())},
            headers=pm_headers,
        )
        assert response.status_code == 404

    async def test_project_without_pm(self, client, create_project, template, make_headers):
        project = await create_project()
        response = await client.post(
            f"/projects/{project['id']}/milestones/apply-template",
            json={"template_id": template["id"]},
            headers=make_headers("PROJECT_MANAGER"),
        )
        assert response.status_code == 403


class TestMilestones:
    async def test_create_update_delete(self, client, managed_project):
        project, _, pm_headers = managed_project
        response = await client.post(
            f"/projects/{project['id']}/milestones",
            json={"name": "Mobilisasi", "start_date": "2025-04-01", "end_date": "2025-04-05"},
            headers=pm_headers,
        )
        assert response.status_code == 201
        milestone = response.json()["data"]
        assert milestone["status"] == "PLANNED"

        response = await client.put(
            f"/milestones/{milestone['id']}", json={"status": "IN_PROGRESS", "end_date": "2025-04-10"}, headers=pm_headers
        )
        assert response.json()["data"]["status"] == "IN_PROGRESS"
        assert response.json()["data"]["end_date"] == "2025-04-10"

        response = await client.delete(f"/milestones/{milestone['id']}", headers=pm_headers)
        assert response.status_code == 200
        response = await client.get(f"/projects/{project['id']}/milestones", headers=pm_headers)
        assert response.json()["data"] == []

    async def test_end_before_start(self, client, managed_project):
        project, _, pm_headers = managed_project
        response = await client.post(
            f"/projects/{project['id']}/milestones",
            json={"name": "Mobilisasi", "start_date": "2025-04-05", "end_date": "2025-04-01"},
            headers=pm_headers,
        )
        assert response.status_code == 400

        response = await client.post(
            f"/projects/{project['id']}/milestones",
            json={"name": "Mobilisasi", "start_date": "2025-04-01", "end_date": "2025-04-05"},
            headers=pm_headers,
        )
        milestone_id = response.json()["data"]["id"]
        response = await client.put(f"/milestones/{milestone_id}", json={"end_date": "2025-03-01"}, headers=pm_headers)
        assert response.status_code == 400

    async def test_unknown_milestone(self, client, managed_project):
        _, _, pm_headers = managed_project
        response = await client.put(f"/milestones/{uuid.uuid4()}", json={"name": "X"}, headers=pm_headers)
        assert response.status_code == 404
