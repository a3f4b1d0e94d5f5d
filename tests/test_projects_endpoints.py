"""Tests for project endpoints."""

import pytest

from conftest import make_auth_headers
from models.project import ProjectStatus


async def create_project(client, admin_user, **overrides):
    body = {"name": "Planta Sur", "location": "Rancagua", **overrides}
    return await client.post("/api/v1/projects", json=body, headers=make_auth_headers(admin_user))


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_admin_creates_project(self, client, admin_user, technician, client_user):
        response = await create_project(
            client,
            admin_user,
            technician_id=str(technician.id),
            client_ids=[str(client_user.id)],
            order_number="OT-100",
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == ProjectStatus.IN_PROGRESS.value
        assert data["technician_id"] == str(technician.id)
        assert data["client_ids"] == [str(client_user.id)]
        assert data["metrics"] == {"total_requests": 0, "open_requests": 0, "completed_requests": 0}

    @pytest.mark.asyncio
    async def test_technician_cannot_create(self, client, technician):
        response = await create_project(client, technician)

        assert response.status_code == 403
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_duplicate_order_number(self, client, admin_user):
        assert (await create_project(client, admin_user, order_number="OT-7")).status_code == 201

        response = await create_project(client, admin_user, name="Otra", order_number="OT-7")

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_client_as_technician_rejected(self, client, admin_user, client_user):
        response = await create_project(client, admin_user, technician_id=str(client_user.id))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_name_is_validation_error(self, client, admin_user):
        response = await client.post(
            "/api/v1/projects",
            json={"location": "Rancagua"},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Validation error"
        assert any(error["loc"][-1] == "name" for error in body["errors"])


class TestProjectVisibility:
    @pytest.mark.asyncio
    async def test_listing_is_scoped_by_role(
        self, client, project, admin_user, technician, other_technician, client_user, other_client
    ):
        await create_project(client, admin_user, name="Sin asignar")

        expected = {
            admin_user: 2,
            technician: 1,
            client_user: 1,
            other_technician: 0,
            other_client: 0,
        }
        for user, total in expected.items():
            response = await client.get("/api/v1/projects", headers=make_auth_headers(user))
            assert response.status_code == 200
            body = response.json()
            assert body["total"] == total, user.email
            assert body["page"] == 1
            assert body["limit"] == 20

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_project(self, client, project, other_client):
        response = await client.get(f"/api/v1/projects/{project.id}", headers=make_auth_headers(other_client))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_member_reads_detail(self, client, project, client_user):
        response = await client.get(f"/api/v1/projects/{project.id}", headers=make_auth_headers(client_user))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Planta Norte"
        assert data["milestones"] == []
        assert data["location_points"] == []

    @pytest.mark.asyncio
    async def test_unknown_project_is_not_found(self, client, admin_user):
        response = await client.get(
            "/api/v1/projects/00000000-0000-0000-0000-000000000000",
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 404


class TestProjectStatus:
    @pytest.mark.asyncio
    async def test_status_change_records_history(self, client, project, admin_user):
        headers = make_auth_headers(admin_user)

        response = await client.put(
            f"/api/v1/projects/{project.id}/status",
            json={"status": ProjectStatus.PAUSED.value, "comments": "Sin materiales"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == ProjectStatus.PAUSED.value
        history = (await client.get(f"/api/v1/projects/{project.id}/history", headers=headers)).json()["data"]
        assert [entry["status"] for entry in history] == [
            ProjectStatus.IN_PROGRESS.value,
            ProjectStatus.PAUSED.value,
        ]
        assert history[-1]["notes"] == "Sin materiales"

    @pytest.mark.asyncio
    async def test_unknown_status_is_validation_error(self, client, project, admin_user):
        response = await client.put(
            f"/api/v1/projects/{project.id}/status",
            json={"status": "Archived"},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_technician_cannot_change_status(self, client, project, technician):
        response = await client.put(
            f"/api/v1/projects/{project.id}/status",
            json={"status": ProjectStatus.COMPLETED.value},
            headers=make_auth_headers(technician),
        )

        assert response.status_code == 403


class TestMetrics:
    @pytest.mark.asyncio
    async def test_metrics_are_admin_only(self, client, project, admin_user, technician):
        forbidden = await client.get("/api/v1/projects/metrics", headers=make_auth_headers(technician))
        assert forbidden.status_code == 403

        response = await client.get("/api/v1/projects/metrics", headers=make_auth_headers(admin_user))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_projects"] == 1
        assert data["by_status"] == {ProjectStatus.IN_PROGRESS.value: 1}
        assert [(row["technician_id"], row["count"]) for row in data["by_technician"]] == [(str(technician.id), 1)]


class TestProjectAssets:
    @pytest.mark.asyncio
    async def test_milestone_with_attachment(self, client, project, technician):
        response = await client.post(
            f"/api/v1/projects/{project.id}/milestones",
            data={"title": "Excavación", "description": "Zanja lista"},
            files=[("attachments", ("zanja.jpg", b"\xff\xd8jpeg", "image/jpeg"))],
            headers=make_auth_headers(technician),
        )

        assert response.status_code == 201
        milestone = response.json()["data"]
        assert milestone["title"] == "Excavación"
        assert len(milestone["attachments"]) == 1
        assert milestone["attachments"][0]["url"].startswith("/uploads/")

    @pytest.mark.asyncio
    async def test_location_points_by_technician_only(self, client, project, technician, client_user):
        point = {"name": "Bodega", "coordinates": [-70.66, -33.45]}

        forbidden = await client.post(
            f"/api/v1/projects/{project.id}/location-points",
            json=point,
            headers=make_auth_headers(client_user),
        )
        assert forbidden.status_code == 403

        created = await client.post(
            f"/api/v1/projects/{project.id}/location-points",
            json=point,
            headers=make_auth_headers(technician),
        )
        assert created.status_code == 201
        listed = await client.get(
            f"/api/v1/projects/{project.id}/location-points",
            headers=make_auth_headers(client_user),
        )
        assert [p["name"] for p in listed.json()["data"]] == ["Bodega"]

    @pytest.mark.asyncio
    async def test_photo_upload_and_delete(self, client, project, technician, client_user):
        headers = make_auth_headers(technician)

        forbidden = await client.post(
            f"/api/v1/projects/{project.id}/photos",
            files=[("photos", ("a.jpg", b"\xff\xd8a", "image/jpeg"))],
            headers=make_auth_headers(client_user),
        )
        assert forbidden.status_code == 403

        uploaded = await client.post(
            f"/api/v1/projects/{project.id}/photos",
            data={"description": "Fachada"},
            files=[
                ("photos", ("a.jpg", b"\xff\xd8a", "image/jpeg")),
                ("photos", ("b.jpg", b"\xff\xd8b", "image/jpeg")),
            ],
            headers=headers,
        )
        assert uploaded.status_code == 201
        photos = uploaded.json()["data"]
        assert [p["name"] for p in photos] == ["a.jpg", "b.jpg"]
        assert photos[0]["url"].startswith("/uploads/projects/")

        deleted = await client.delete(f"/api/v1/projects/{project.id}/photos/{photos[0]['id']}", headers=headers)
        assert deleted.status_code == 200
        detail = (await client.get(f"/api/v1/projects/{project.id}", headers=headers)).json()["data"]
        assert [p["name"] for p in detail["photos"]] == ["b.jpg"]
        assert detail["documents"] == []
