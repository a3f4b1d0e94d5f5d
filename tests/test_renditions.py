"""Rendition filing, submission, review and the approval cascade."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException, status
from pydantic import ValidationError

from conftest import actor_for
from models.notification import RelatedModel
from models.rendition import (
    ExpenseCreate,
    RejectionReason,
    RenditionCreate,
    RenditionReject,
    RenditionStatus,
)
from models.service_request import ServiceRequestCreate, ServiceRequestStatus, ServiceRequestUpdate
from models.status_history import HistoryEntity
from repos import notifications_repo, projects_repo, service_requests_repo
from services import lifecycle, notifications_service, renditions_service, service_requests_service, status_history

MAY_10 = datetime(2025, 5, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def service_request_factory(db_session, project, client_user):
    async def _create(title: str = "leak"):
        return await service_requests_service.create_request(
            db_session,
            actor=actor_for(client_user),
            payload=ServiceRequestCreate(project_id=project.id, title=title, description="Water leak"),
            now=MAY_10,
        )

    return _create


async def file_rendition(db_session, technician, service_request):
    return await renditions_service.create_rendition(
        db_session,
        actor=actor_for(technician),
        payload=RenditionCreate(service_request_id=service_request.id, description="Replaced pipe"),
        now=MAY_10,
    )


async def add_materials(db_session, technician, rendition, amount="50000"):
    return await renditions_service.add_expense(
        db_session,
        actor=actor_for(technician),
        rendition_id=rendition.id,
        payload=ExpenseCreate(category="Materiales", amount=Decimal(amount), description="PVC pipe"),
    )


class TestCreateRendition:
    @pytest.mark.asyncio
    async def test_folio_and_creation_history(self, db_session, technician, service_request_factory):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)

        assert rendition.folio == "RND-250510-001"
        assert rendition.status == RenditionStatus.PENDING.value
        assert rendition.service_request_id == sr.id
        history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.RENDITION, entity_id=rendition.id
        )
        assert [(entry.position, entry.status) for entry in history] == [(0, RenditionStatus.PENDING.value)]
        assert await service_requests_repo.list_rendition_ids(db_session, service_request_id=sr.id) == [rendition.id]

    @pytest.mark.asyncio
    async def test_client_cannot_file(self, db_session, client_user, service_request_factory):
        sr = await service_request_factory()
        with pytest.raises(HTTPException) as exc_info:
            await file_rendition(db_session, client_user, sr)
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_assigned_request_only_accepts_assignee(
        self, db_session, admin_user, technician, other_technician, service_request_factory
    ):
        sr = await service_request_factory()
        await service_requests_service.update_request(
            db_session,
            actor=actor_for(admin_user),
            service_request_id=sr.id,
            payload=ServiceRequestUpdate(assigned_to=other_technician.id),
        )

        with pytest.raises(HTTPException) as exc_info:
            await file_rendition(db_session, technician, sr)
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

        rendition = await file_rendition(db_session, other_technician, sr)
        assert rendition.technician_id == other_technician.id

    @pytest.mark.asyncio
    async def test_technician_outside_project_cannot_file_unassigned(
        self, db_session, other_technician, service_request_factory
    ):
        sr = await service_request_factory()
        with pytest.raises(HTTPException) as exc_info:
            await file_rendition(db_session, other_technician, sr)
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN


class TestSubmission:
    @pytest.mark.asyncio
    async def test_first_expense_submits_rendition(self, db_session, technician, service_request_factory):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)

        expense = await add_materials(db_session, technician, rendition)

        assert expense.position == 0
        detail = await renditions_service.get_rendition(
            db_session, actor=actor_for(technician), rendition_id=rendition.id
        )
        assert detail.status == RenditionStatus.SUBMITTED.value
        assert detail.total_amount == Decimal("50000")
        assert [entry.status for entry in detail.history] == [
            RenditionStatus.PENDING.value,
            RenditionStatus.SUBMITTED.value,
        ]

    @pytest.mark.asyncio
    async def test_approving_pending_rendition_is_rejected(
        self, db_session, admin_user, technician, service_request_factory
    ):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        with pytest.raises(HTTPException) as exc_info:
            await renditions_service.approve_rendition(db_session, actor=actor_for(admin_user), rendition_id=rendition.id)
        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST


class TestReview:
    @pytest.mark.asyncio
    async def test_explicit_review_then_approval(self, db_session, admin_user, technician, service_request_factory):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition)
        actor = actor_for(admin_user)

        reviewed = await renditions_service.start_review(db_session, actor=actor, rendition_id=rendition.id)
        assert reviewed.status == RenditionStatus.UNDER_REVIEW.value
        await renditions_service.start_review(db_session, actor=actor, rendition_id=rendition.id)
        await renditions_service.approve_rendition(db_session, actor=actor, rendition_id=rendition.id)

        history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.RENDITION, entity_id=rendition.id
        )
        assert [entry.status for entry in history] == [
            RenditionStatus.PENDING.value,
            RenditionStatus.SUBMITTED.value,
            RenditionStatus.UNDER_REVIEW.value,
            RenditionStatus.APPROVED.value,
        ]
        assert history[2].changed_by == admin_user.id

    @pytest.mark.asyncio
    async def test_only_admins_review(self, db_session, technician, service_request_factory):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition)

        with pytest.raises(HTTPException) as exc_info:
            await renditions_service.start_review(db_session, actor=actor_for(technician), rendition_id=rendition.id)
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_pending_rendition_cannot_be_reviewed(
        self, db_session, admin_user, technician, service_request_factory
    ):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)

        with pytest.raises(HTTPException) as exc_info:
            await renditions_service.start_review(db_session, actor=actor_for(admin_user), rendition_id=rendition.id)
        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST


class TestApproval:
    @pytest.mark.asyncio
    async def test_approval_completes_request_as_reviewer(
        self, db_session, project, admin_user, technician, service_request_factory
    ):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition)

        approved = await renditions_service.approve_rendition(
            db_session, actor=actor_for(admin_user), rendition_id=rendition.id, review_comments="OK"
        )

        assert approved.status == RenditionStatus.APPROVED.value
        assert approved.reviewed_by == admin_user.id
        assert approved.review_comments == "OK"

        stored = await service_requests_repo.get_by_id(db_session, service_request_id=sr.id)
        assert stored.status == ServiceRequestStatus.COMPLETED.value
        assert stored.completion_date is not None

        history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=sr.id
        )
        assert [entry.position for entry in history] == [0, 1]
        assert history[-1].status == ServiceRequestStatus.COMPLETED.value
        assert history[-1].changed_by == admin_user.id
        assert history[-1].notes == lifecycle.AUTO_COMPLETION_NOTES

        stored_project = await projects_repo.get_by_id(db_session, project_id=project.id)
        assert stored_project.completed_requests == 1
        assert stored_project.open_requests == 0

    @pytest.mark.asyncio
    async def test_second_approval_is_noop(self, db_session, admin_user, technician, service_request_factory):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition)
        actor = actor_for(admin_user)

        await renditions_service.approve_rendition(db_session, actor=actor, rendition_id=rendition.id)
        await renditions_service.approve_rendition(db_session, actor=actor, rendition_id=rendition.id)

        rendition_history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.RENDITION, entity_id=rendition.id
        )
        request_history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=sr.id
        )
        assert [entry.status for entry in rendition_history] == [
            RenditionStatus.PENDING.value,
            RenditionStatus.SUBMITTED.value,
            RenditionStatus.UNDER_REVIEW.value,
            RenditionStatus.APPROVED.value,
        ]
        assert rendition_history[2].notes == renditions_service.REVIEW_NOTES
        assert len(request_history) == 2

    @pytest.mark.asyncio
    async def test_approved_rendition_is_locked(self, db_session, admin_user, technician, service_request_factory):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition)
        await renditions_service.approve_rendition(db_session, actor=actor_for(admin_user), rendition_id=rendition.id)

        with pytest.raises(HTTPException) as exc_info:
            await add_materials(db_session, technician, rendition, amount="10")
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

        with pytest.raises(HTTPException) as exc_info:
            await renditions_service.delete_rendition(
                db_session, actor=actor_for(admin_user), rendition_id=rendition.id
            )
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN


class TestRejection:
    def test_rejection_requires_comments(self):
        with pytest.raises(ValidationError):
            RenditionReject(rejection_reason=RejectionReason.WRONG_AMOUNTS, rejection_comments="   ")

    @pytest.mark.asyncio
    async def test_rejection_records_reason_and_notifies_author(
        self, db_session, admin_user, technician, service_request_factory
    ):
        sr = await service_request_factory()
        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition)

        rejected = await renditions_service.reject_rendition(
            db_session,
            actor=actor_for(admin_user),
            rendition_id=rendition.id,
            payload=RenditionReject(
                rejection_reason=RejectionReason.WRONG_AMOUNTS,
                rejection_comments="Receipt total does not match",
            ),
        )

        assert rejected.status == RenditionStatus.REJECTED.value
        assert rejected.rejection_reason == RejectionReason.WRONG_AMOUNTS.value
        stored = await service_requests_repo.get_by_id(db_session, service_request_id=sr.id)
        assert stored.status == ServiceRequestStatus.REQUESTED.value

        notifications, _ = await notifications_repo.list_for_recipient(db_session, recipient_id=technician.id)
        rejected_notes = [n for n in notifications if n.title == "Rendición rechazada"]
        assert len(rejected_notes) == 1
        assert rejected_notes[0].related_model == RelatedModel.RENDITION.value
        assert rejected_notes[0].related_id == rendition.id


class TestVisibility:
    @pytest.mark.asyncio
    async def test_clients_cannot_list_renditions(self, db_session, client_user):
        with pytest.raises(HTTPException) as exc_info:
            await renditions_service.list_renditions(db_session, actor=actor_for(client_user))
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_technicians_list_only_their_own(
        self, db_session, admin_user, technician, other_technician, service_request_factory
    ):
        sr = await service_request_factory()
        await file_rendition(db_session, technician, sr)

        totals = []
        for user in (technician, other_technician, admin_user):
            _, total = await renditions_service.list_renditions(db_session, actor=actor_for(user))
            totals.append(total)
        assert totals == [1, 0, 1]


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_request_to_approved_rendition(self, db_session, project, admin_user, technician, client_user):
        sr = await service_requests_service.create_request(
            db_session,
            actor=actor_for(client_user),
            payload=ServiceRequestCreate(project_id=project.id, title="leak", description="Water leak"),
            now=MAY_10,
        )
        assert sr.request_number == "SR-2505-0001"

        rendition = await file_rendition(db_session, technician, sr)
        await add_materials(db_session, technician, rendition, amount="50000")
        await renditions_service.approve_rendition(db_session, actor=actor_for(admin_user), rendition_id=rendition.id)

        stored = await service_requests_repo.get_by_id(db_session, service_request_id=sr.id)
        assert stored.status == ServiceRequestStatus.COMPLETED.value

        notifications, _ = await notifications_service.list_notifications(db_session, actor=actor_for(client_user))
        about_request = [
            n for n in notifications
            if n.related_model == RelatedModel.SERVICE_REQUEST.value and n.related_id == sr.id
        ]
        assert about_request, f"client got {[n.title for n in notifications]}"
        assert "SR-2505-0001" in about_request[0].message
