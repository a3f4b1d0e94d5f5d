"""End-to-end flow over HTTP: request, rendition with expenses, review."""

import pytest

from conftest import make_auth_headers
from models.rendition import RenditionStatus
from models.service_request import ServiceRequestStatus


async def raise_request(client, project, client_user, title="leak"):
    response = await client.post(
        "/api/v1/service-requests",
        json={"project_id": str(project.id), "title": title, "description": "Water leak in room 3"},
        headers=make_auth_headers(client_user),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def file_rendition(client, technician, service_request):
    response = await client.post(
        "/api/v1/renditions",
        json={"service_request_id": service_request["id"], "description": "Replaced pipe"},
        headers=make_auth_headers(technician),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestServiceRequestEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_read(self, client, project, client_user):
        created = await raise_request(client, project, client_user)

        assert created["request_number"].startswith("SR-")
        assert created["status"] == ServiceRequestStatus.REQUESTED.value
        response = await client.get(
            f"/api/v1/service-requests/{created['id']}",
            headers=make_auth_headers(client_user),
        )
        assert response.status_code == 200
        detail = response.json()["data"]
        assert [entry["status"] for entry in detail["history"]] == [ServiceRequestStatus.REQUESTED.value]
        assert detail["comments"] == []

    @pytest.mark.asyncio
    async def test_outsider_client_cannot_create(self, client, project, other_client):
        response = await client.post(
            "/api/v1/service-requests",
            json={"project_id": str(project.id), "title": "leak", "description": "Water leak"},
            headers=make_auth_headers(other_client),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_client_lists_only_own_requests(self, client, project, admin_user, client_user):
        await raise_request(client, project, client_user)
        await client.post(
            "/api/v1/service-requests",
            json={"project_id": str(project.id), "title": "admin", "description": "Raised by admin"},
            headers=make_auth_headers(admin_user),
        )

        mine = await client.get("/api/v1/service-requests", headers=make_auth_headers(client_user))
        everything = await client.get("/api/v1/service-requests", headers=make_auth_headers(admin_user))

        assert mine.json()["total"] == 1
        assert everything.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_status_filter_uses_persisted_labels(self, client, project, admin_user, client_user):
        await raise_request(client, project, client_user)
        headers = make_auth_headers(admin_user)

        requested = await client.get(
            "/api/v1/service-requests",
            params={"status": ServiceRequestStatus.REQUESTED.value},
            headers=headers,
        )
        completed = await client.get(
            "/api/v1/service-requests",
            params={"status": ServiceRequestStatus.COMPLETED.value},
            headers=headers,
        )
        invalid = await client.get("/api/v1/service-requests", params={"status": "Done"}, headers=headers)

        assert requested.json()["total"] == 1
        assert completed.json()["total"] == 0
        assert invalid.status_code == 422

    @pytest.mark.asyncio
    async def test_comment_notifies_requester(self, client, project, admin_user, client_user):
        created = await raise_request(client, project, client_user)

        response = await client.post(
            f"/api/v1/service-requests/{created['id']}/comments",
            json={"text": "Vamos mañana"},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 201
        assert response.json()["data"]["text"] == "Vamos mañana"
        unread = await client.get("/api/v1/notifications/unread", headers=make_auth_headers(client_user))
        titles = [n["title"] for n in unread.json()["data"]["notifications"]]
        assert "Nuevo comentario en solicitud" in titles


class TestRenditionFlow:
    @pytest.mark.asyncio
    async def test_expense_with_payment_proof_then_approval(
        self, client, project, admin_user, technician, client_user
    ):
        service_request = await raise_request(client, project, client_user)
        rendition = await file_rendition(client, technician, service_request)
        assert rendition["folio"].startswith("RND-")
        assert rendition["status"] == RenditionStatus.PENDING.value

        expense = await client.post(
            f"/api/v1/renditions/{rendition['id']}/expenses",
            data={"category": "Materiales", "amount": "50000", "description": "PVC pipe"},
            files={"payment_proof": ("boleta.pdf", b"%PDF-1.4 receipt", "application/pdf")},
            headers=make_auth_headers(technician),
        )
        assert expense.status_code == 201, expense.text
        expense_data = expense.json()["data"]
        assert expense_data["payment_proof_name"] == "boleta.pdf"
        assert expense_data["payment_proof_url"].startswith("/uploads/expenses/")

        detail = await client.get(
            f"/api/v1/renditions/{rendition['id']}",
            headers=make_auth_headers(technician),
        )
        assert detail.json()["data"]["status"] == RenditionStatus.SUBMITTED.value
        assert float(detail.json()["data"]["total_amount"]) == 50000

        approved = await client.put(
            f"/api/v1/renditions/{rendition['id']}/approve",
            json={"review_comments": "Conforme"},
            headers=make_auth_headers(admin_user),
        )
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == RenditionStatus.APPROVED.value

        request_detail = await client.get(
            f"/api/v1/service-requests/{service_request['id']}",
            headers=make_auth_headers(client_user),
        )
        data = request_detail.json()["data"]
        assert data["status"] == ServiceRequestStatus.COMPLETED.value
        assert data["rendition_ids"] == [rendition["id"]]

        unread = await client.get("/api/v1/notifications/unread", headers=make_auth_headers(client_user))
        related = [
            n for n in unread.json()["data"]["notifications"]
            if n["related_model"] == "ServiceRequest" and n["related_id"] == service_request["id"]
        ]
        assert len(related) == 1

    @pytest.mark.asyncio
    async def test_review_step_before_rejection(self, client, project, admin_user, technician, client_user):
        service_request = await raise_request(client, project, client_user)
        rendition = await file_rendition(client, technician, service_request)
        await client.post(
            f"/api/v1/renditions/{rendition['id']}/expenses",
            data={"category": "Materiales", "amount": "1200", "description": "Teflon"},
            headers=make_auth_headers(technician),
        )
        admin = make_auth_headers(admin_user)

        forbidden = await client.put(
            f"/api/v1/renditions/{rendition['id']}/review", headers=make_auth_headers(technician)
        )
        reviewed = await client.put(f"/api/v1/renditions/{rendition['id']}/review", headers=admin)
        rejected = await client.put(
            f"/api/v1/renditions/{rendition['id']}/reject",
            json={"rejection_reason": "Montos incorrectos", "rejection_comments": "Falta boleta"},
            headers=admin,
        )

        assert forbidden.status_code == 403
        assert reviewed.status_code == 200
        assert reviewed.json()["data"]["status"] == RenditionStatus.UNDER_REVIEW.value
        assert rejected.status_code == 200, rejected.text
        history = await client.get(f"/api/v1/renditions/{rendition['id']}/history", headers=admin)
        assert [entry["status"] for entry in history.json()["data"]] == [
            RenditionStatus.PENDING.value,
            RenditionStatus.SUBMITTED.value,
            RenditionStatus.UNDER_REVIEW.value,
            RenditionStatus.REJECTED.value,
        ]

    @pytest.mark.asyncio
    async def test_non_positive_amount_is_rejected(self, client, project, technician, client_user):
        service_request = await raise_request(client, project, client_user)
        rendition = await file_rendition(client, technician, service_request)

        response = await client.post(
            f"/api/v1/renditions/{rendition['id']}/expenses",
            data={"category": "Materiales", "amount": "0", "description": "Nothing"},
            headers=make_auth_headers(technician),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_clients_cannot_see_renditions(self, client, project, technician, client_user):
        service_request = await raise_request(client, project, client_user)
        rendition = await file_rendition(client, technician, service_request)
        headers = make_auth_headers(client_user)

        listing = await client.get("/api/v1/renditions", headers=headers)
        detail = await client.get(f"/api/v1/renditions/{rendition['id']}", headers=headers)

        assert listing.status_code == 403
        assert detail.status_code == 403

    @pytest.mark.asyncio
    async def test_reject_requires_comments(self, client, project, admin_user, technician, client_user):
        service_request = await raise_request(client, project, client_user)
        rendition = await file_rendition(client, technician, service_request)

        response = await client.put(
            f"/api/v1/renditions/{rendition['id']}/reject",
            json={"rejection_reason": "Montos incorrectos", "rejection_comments": ""},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 422


class TestExpenseCategories:
    @pytest.mark.asyncio
    async def test_list_and_admin_create(self, client, expense_categories, admin_user, technician):
        listed = await client.get("/api/v1/expense-categories", headers=make_auth_headers(technician))
        assert sorted(c["name"] for c in listed.json()["data"]) == ["Alimentación", "Materiales", "Transporte"]

        forbidden = await client.post(
            "/api/v1/expense-categories",
            json={"name": "Peajes"},
            headers=make_auth_headers(technician),
        )
        assert forbidden.status_code == 403

        created = await client.post(
            "/api/v1/expense-categories",
            json={"name": "Peajes"},
            headers=make_auth_headers(admin_user),
        )
        assert created.status_code == 201
        duplicate = await client.post(
            "/api/v1/expense-categories",
            json={"name": "Peajes"},
            headers=make_auth_headers(admin_user),
        )
        assert duplicate.status_code == 409
