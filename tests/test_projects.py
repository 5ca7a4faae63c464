"""Project lookup, PM assignment, status changes and the bill of materials."""
import uuid


class TestProjectQueries:
    async def test_list_and_filters(self, client, create_project, admin_headers):
        await create_project()
        await create_project(salesUserId="sales-002")

        response = await client.get("/projects", headers=admin_headers)
        assert response.json()["pagination"]["total"] == 2

        response = await client.get("/projects", params={"sales_user_id": "sales-002"}, headers=admin_headers)
        assert [project["sales_user_id"] for project in response.json()["data"]] == ["sales-002"]

        response = await client.get("/projects", params={"status": "Planning"}, headers=admin_headers)
        assert response.json()["data"] == []

    async def test_detail_of_unknown_project(self, client, admin_headers):
        response = await client.get(f"/projects/{uuid.uuid4()}", headers=admin_headers)
        assert response.status_code == 404

    async def test_project_managers_come_from_identity(self, client, identity_client, admin_headers):
        pm_id = identity_client.add_user(["PROJECT_MANAGER"], email="pm@example.com", full_name="Budi")
        identity_client.add_user(["SALES"])

        response = await client.get("/projects/managers", headers=admin_headers)
        assert response.json()["data"] == [
            {"id": pm_id, "email": "pm@example.com", "full_name": "Budi", "roles": ["PROJECT_MANAGER"]}
        ]

    async def test_identity_outage_is_502(self, client, identity_client, admin_headers):
        identity_client.unavailable = True
        response = await client.get("/projects/managers", headers=admin_headers)
        assert response.status_code == 502


class TestAssignProjectManager:
    async def test_assignment_moves_new_project_to_planning(
        self, client, create_project, identity_client, make_headers, notifier
    ):
        project = await create_project()
        pm_id = identity_client.add_user(["PROJECT_MANAGER"], email="pm@example.com")

        response = await client.put(
            f"/projects/{project['id']}/assign-pm",
            json={"pm_user_id": pm_id},
            headers=make_headers("OPERATIONAL_MANAGER"),
        )
        assert response.status_code == 200
        assert response.json()["data"]["pm_user_id"] == pm_id
        assert response.json()["data"]["status"] == "Planning"

        assert [notification.user_id for notification in notifier.sent] == [pm_id]
        assert project["project_name"] in notifier.sent[0].message

        response = await client.get(f"/projects/{project['id']}/activities", headers=make_headers("EMPLOYEE"))
        change = next(a for a in response.json()["data"] if a["description"].startswith("Project manager assigned"))
        assert change["metadata"]["old_status"] == "New"
        assert change["metadata"]["new_status"] == "Planning"

    async def test_reassignment_keeps_status(self, client, managed_project, identity_client, make_headers):
        project, _, pm_headers = managed_project
        await client.patch(f"/projects/{project['id']}/status", json={"status": "In Progress"}, headers=pm_headers)

        other_pm = identity_client.add_user(["PROJECT_MANAGER"])
        response = await client.put(
            f"/projects/{project['id']}/assign-pm",
            json={"pm_user_id": other_pm},
            headers=make_headers("OPERATIONAL_MANAGER"),
        )
        assert response.json()["data"]["status"] == "In Progress"
        assert response.json()["data"]["pm_user_id"] == other_pm

    async def test_user_without_pm_role_is_rejected(self, client, create_project, identity_client, make_headers):
        project = await create_project()
        sales_id = identity_client.add_user(["SALES"])
        response = await client.put(
            f"/projects/{project['id']}/assign-pm",
            json={"pm_user_id": sales_id},
            headers=make_headers("OPERATIONAL_MANAGER"),
        )
        assert response.status_code == 400
        assert "PROJECT_MANAGER" in response.json()["message"]

    async def test_unknown_user_is_rejected(self, client, create_project, make_headers):
        project = await create_project()
        response = await client.put(
            f"/projects/{project['id']}/assign-pm",
            json={"pm_user_id": str(uuid.uuid4())},
            headers=make_headers("OPERATIONAL_MANAGER"),
        )
        assert response.status_code == 400

    async def test_only_operational_manager_assigns(self, client, create_project, identity_client, make_headers):
        project = await create_project()
        pm_id = identity_client.add_user(["PROJECT_MANAGER"])
        response = await client.put(
            f"/projects/{project['id']}/assign-pm",
            json={"pm_user_id": pm_id},
            headers=make_headers("PROJECT_MANAGER", user_id=pm_id),
        )
        assert response.status_code == 403

    async def test_unknown_project(self, client, identity_client, make_headers):
        pm_id = identity_client.add_user(["PROJECT_MANAGER"])
        response = await client.put(
            f"/projects/{uuid.uuid4()}/assign-pm",
            json={"pm_user_id": pm_id},
            headers=make_headers("OPERATIONAL_MANAGER"),
        )
        assert response.status_code == 404


class TestProjectStatus:
    async def test_pm_moves_project_forward(self, client, managed_project):
        project, _, pm_headers = managed_project
        response = await client.patch(
            f"/projects/{project['id']}/status", json={"status": "In Progress"}, headers=pm_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "In Progress"

    async def test_invalid_transition(self, client, managed_project):
        project, _, pm_headers = managed_project
        response = await client.patch(
            f"/projects/{project['id']}/status", json={"status": "Completed"}, headers=pm_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STATE_TRANSITION"

    async def test_other_users_cannot_change_status(self, client, managed_project, make_headers):
        project, _, _ = managed_project
        response = await client.patch(
            f"/projects/{project['id']}/status",
            json={"status": "In Progress"},
            headers=make_headers("PROJECT_MANAGER"),
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden: Only the assigned PM can change the project status"

    async def test_unknown_status_value(self, client, managed_project):
        project, _, pm_headers = managed_project
        response = await client.patch(
            f"/projects/{project['id']}/status", json={"status": "Archived"}, headers=pm_headers
        )
        assert response.status_code == 400


class TestBillOfMaterials:
    async def test_replace_swaps_all_items(self, client, managed_project):
        project, _, pm_headers = managed_project
        url = f"/projects/{project['id']}/bom"

        response = await client.put(
            url,
            json={"items": [
                {"item_id": "MAT-1", "item_type": "MATERIAL", "quantity": 10},
                {"item_id": "SVC-1", "item_type": "SERVICE", "quantity": 2},
            ]},
            headers=pm_headers,
        )
        assert response.status_code == 200
        assert len(response.json()["data"]) == 2

        response = await client.put(
            url, json={"items": [{"item_id": "MAT-2", "item_type": "MATERIAL", "quantity": 1.5}]}, headers=pm_headers
        )
        assert [(item["item_id"], item["quantity"]) for item in response.json()["data"]] == [("MAT-2", 1.5)]

        response = await client.get(url, headers=pm_headers)
        assert [item["item_id"] for item in response.json()["data"]] == ["MAT-2"]

    async def test_empty_list_clears_bom(self, client, managed_project):
        project, _, pm_headers = managed_project
        url = f"/projects/{project['id']}/bom"
        await client.put(url, json={"items": [{"item_id": "MAT-1", "item_type": "MATERIAL", "quantity": 1}]}, headers=pm_headers)

        response = await client.put(url, json={"items": []}, headers=pm_headers)
        assert response.json()["data"] == []

    async def test_only_assigned_pm_updates_bom(self, client, managed_project, admin_headers):
        project, _, _ = managed_project
        response = await client.put(
            f"/projects/{project['id']}/bom",
            json={"items": [{"item_id": "MAT-1", "item_type": "MATERIAL", "quantity": 1}]},
            headers=admin_headers,
        )
        assert response.status_code == 403

    async def test_invalid_item_writes_nothing(self, client, managed_project):
        project, _, pm_headers = managed_project
        url = f"/projects/{project['id']}/bom"
        await client.put(url, json={"items": [{"item_id": "MAT-1", "item_type": "MATERIAL", "quantity": 1}]}, headers=pm_headers)

        response = await client.put(
            url,
            json={"items": [
                {"item_id": "MAT-2", "item_type": "MATERIAL", "quantity": 1},
                {"item_id": "MAT-3", "item_type": "MATERIAL", "quantity": 0},
            ]},
            headers=pm_headers,
        )
        assert response.status_code == 400

        response = await client.get(url, headers=pm_headers)
        assert [item["item_id"] for item in response.json()["data"]] == ["MAT-1"]
