"""Tests for the admin reports."""

import calendar
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException, status

from conftest import actor_for, make_auth_headers
from models.project import ProjectStatus
from models.rendition import ExpenseCreate, RenditionCreate, RenditionStatus
from models.service_request import ServiceRequestCreate, ServiceRequestStatus, ServiceRequestUpdate
from services import renditions_service, reports_service, service_requests_service

MAY_10 = datetime(2025, 5, 10, 12, 0, tzinfo=UTC)
MAY_12 = datetime(2025, 5, 12, 12, 0, tzinfo=UTC)
MAY_2025 = {"start_date": date(2025, 5, 1), "end_date": date(2025, 5, 31)}


async def approved_work_over_http(client, project, admin_user, technician, client_user):
    """Request -> rendition with one 50000 expense -> approval, all through the API."""
    request = await client.post(
        "/api/v1/service-requests",
        json={"project_id": str(project.id), "title": "leak", "description": "Water leak in room 3"},
        headers=make_auth_headers(client_user),
    )
    service_request = request.json()["data"]
    rendition = (
        await client.post(
            "/api/v1/renditions",
            json={"service_request_id": service_request["id"], "description": "Replaced pipe"},
            headers=make_auth_headers(technician),
        )
    ).json()["data"]
    await client.post(
        f"/api/v1/renditions/{rendition['id']}/expenses",
        data={"category": "Materiales", "amount": "50000", "description": "PVC pipe"},
        headers=make_auth_headers(technician),
    )
    approved = await client.put(
        f"/api/v1/renditions/{rendition['id']}/approve",
        json={"review_comments": "Conforme"},
        headers=make_auth_headers(admin_user),
    )
    assert approved.status_code == 200, approved.text
    return service_request, rendition


class TestReportAccess:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        [
            "/api/v1/reports/projects",
            "/api/v1/reports/service-requests",
            "/api/v1/reports/renditions",
            "/api/v1/reports/technician-performance",
            "/api/v1/reports/monthly",
        ],
    )
    async def test_reports_are_admin_only(self, client, admin_user, technician, path):
        forbidden = await client.get(path, headers=make_auth_headers(technician))
        allowed = await client.get(path, headers=make_auth_headers(admin_user))

        assert forbidden.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["success"] is True

    @pytest.mark.asyncio
    async def test_inverted_range_is_bad_request(self, client, admin_user):
        response = await client.get(
            "/api/v1/reports/projects",
            params={"start_date": "2025-06-01", "end_date": "2025-05-01"},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_month_out_of_range_is_validation_error(self, client, admin_user):
        response = await client.get(
            "/api/v1/reports/monthly",
            params={"year": 2025, "month": 13},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 422


class TestReportContents:
    @pytest.mark.asyncio
    async def test_projects_and_renditions_reports(self, client, project, admin_user, technician, client_user):
        await approved_work_over_http(client, project, admin_user, technician, client_user)
        headers = make_auth_headers(admin_user)

        projects = (await client.get("/api/v1/reports/projects", headers=headers)).json()["data"]
        renditions = (await client.get("/api/v1/reports/renditions", headers=headers)).json()["data"]

        assert projects["projects_by_status"] == [{"key": ProjectStatus.IN_PROGRESS.value, "count": 1}]
        assert [(p["project_name"], p["count"]) for p in projects["service_requests_by_project"]] == [
            ("Planta Norte", 1)
        ]
        assert renditions["renditions_by_status"] == [{"key": RenditionStatus.APPROVED.value, "count": 1}]
        assert [(t["technician_name"], t["count"]) for t in renditions["renditions_by_technician"]] == [
            ("Tomas Test", 1)
        ]
        [materials] = renditions["expenses_by_category"]
        assert materials["category"] == "Materiales"
        assert float(materials["total_amount"]) == 50000
        assert materials["count"] == 1

    @pytest.mark.asyncio
    async def test_service_requests_report(self, client, project, admin_user, technician, client_user):
        await approved_work_over_http(client, project, admin_user, technician, client_user)

        response = await client.get("/api/v1/reports/service-requests", headers=make_auth_headers(admin_user))

        data = response.json()["data"]
        assert data["requests_by_status"] == [{"key": ServiceRequestStatus.COMPLETED.value, "count": 1}]
        assert sum(group["count"] for group in data["requests_by_priority"]) == 1
        assert sum(group["count"] for group in data["requests_by_type"]) == 1
        this_month = datetime.now(UTC).strftime("%Y-%m")
        assert data["requests_by_month"] == [{"month": this_month, "count": 1}]

    @pytest.mark.asyncio
    async def test_monthly_report_for_current_month(self, client, project, admin_user, technician, client_user):
        await approved_work_over_http(client, project, admin_user, technician, client_user)
        today = datetime.now(UTC)

        response = await client.get(
            "/api/v1/reports/monthly",
            params={"year": today.year, "month": today.month},
            headers=make_auth_headers(admin_user),
        )

        data = response.json()["data"]
        summary = data["summary"]
        assert summary["new_projects"] == 1
        assert summary["new_requests"] == 1
        assert summary["completed_requests"] == 1
        assert summary["new_renditions"] == 1
        assert summary["approved_renditions"] == 1
        assert float(summary["total_expenses"]) == 50000
        assert len(data["activity_by_day"]) == calendar.monthrange(today.year, today.month)[1]
        todays = data["activity_by_day"][today.day - 1]
        assert todays["day"] == today.day
        assert sorted(a["key"] for a in todays["activities"]) == sorted(
            [ServiceRequestStatus.REQUESTED.value, ServiceRequestStatus.COMPLETED.value]
        )


class TestReportFigures:
    async def _work_in_may(self, db_session, project, admin_user, technician, client_user):
        sr = await service_requests_service.create_request(
            db_session,
            actor=actor_for(client_user),
            payload=ServiceRequestCreate(project_id=project.id, title="leak", description="Water leak"),
            now=MAY_10,
        )
        await service_requests_service.update_request(
            db_session,
            actor=actor_for(admin_user),
            service_request_id=sr.id,
            payload=ServiceRequestUpdate(assigned_to=technician.id),
        )
        rendition = await renditions_service.create_rendition(
            db_session,
            actor=actor_for(technician),
            payload=RenditionCreate(service_request_id=sr.id, description="Replaced pipe"),
            now=MAY_10,
        )
        await renditions_service.add_expense(
            db_session,
            actor=actor_for(technician),
            rendition_id=rendition.id,
            payload=ExpenseCreate(category="Materiales", amount=Decimal("50000"), description="PVC pipe"),
        )
        await renditions_service.approve_rendition(
            db_session, actor=actor_for(admin_user), rendition_id=rendition.id, now=MAY_12
        )
        return sr

    @pytest.mark.asyncio
    async def test_technician_performance(
        self, db_session, project, admin_user, technician, other_technician, client_user
    ):
        await self._work_in_may(db_session, project, admin_user, technician, client_user)

        report = await reports_service.technician_performance_report(
            db_session, actor=actor_for(admin_user), **MAY_2025
        )

        by_name = {row.technician_name: row.metrics for row in report.technician_performance}
        assert set(by_name) == {"Tomas Test", "Teresa Test"}
        busy = by_name["Tomas Test"]
        assert (busy.assigned_requests, busy.completed_requests, busy.completion_rate) == (1, 1, 100.0)
        assert (busy.renditions_submitted, busy.renditions_approved, busy.approval_rate) == (1, 1, 100.0)
        assert busy.avg_response_days == 2.0
        idle = by_name["Teresa Test"]
        assert (idle.assigned_requests, idle.completion_rate, idle.avg_response_days) == (0, 0.0, None)

    @pytest.mark.asyncio
    async def test_monthly_report_counts_by_event_date(
        self, db_session, project, admin_user, technician, client_user
    ):
        await self._work_in_may(db_session, project, admin_user, technician, client_user)

        report = await reports_service.monthly_report(
            db_session, actor=actor_for(admin_user), year=2025, month=5
        )

        assert report.summary.new_requests == 1
        assert report.summary.completed_requests == 1
        assert report.summary.approved_renditions == 1
        assert report.summary.total_expenses == Decimal("50000")
        assert report.summary.new_projects == 0
        assert len(report.activity_by_day) == 31
        assert [(a.key, a.count) for a in report.activity_by_day[9].activities] == [
            (ServiceRequestStatus.REQUESTED.value, 1)
        ]
        assert [(a.key, a.count) for a in report.activity_by_day[11].activities] == [
            (ServiceRequestStatus.COMPLETED.value, 1)
        ]

    @pytest.mark.asyncio
    async def test_range_outside_activity_is_empty(
        self, db_session, project, admin_user, technician, client_user
    ):
        await self._work_in_may(db_session, project, admin_user, technician, client_user)

        report = await reports_service.renditions_report(
            db_session,
            actor=actor_for(admin_user),
            start_date=date(2025, 6, 1),
            end_date=date(2025, 6, 30),
        )

        assert report.renditions_by_status == []
        assert report.expenses_by_category == []

    def test_default_range_is_one_month(self):
        start, end = reports_service.resolve_range(None, None, now=datetime(2025, 3, 31, 8, 0, tzinfo=UTC))

        assert end == datetime(2025, 3, 31, 8, 0, tzinfo=UTC)
        assert start == datetime(2025, 2, 28, 8, 0, tzinfo=UTC)

    def test_end_date_is_inclusive(self):
        start, end = reports_service.resolve_range(date(2025, 5, 1), date(2025, 5, 31))

        assert start == datetime(2025, 5, 1, tzinfo=UTC)
        assert end == datetime(2025, 6, 1, tzinfo=UTC)

    def test_empty_range_is_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            reports_service.resolve_range(date(2025, 5, 2), date(2025, 5, 1))
        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST
