"""Service request creation, numbering, status changes and history."""

from datetime import UTC, datetime

import pytest
from fastapi import HTTPException, status
from sqlalchemy import select

import config
from conftest import actor_for
from models.service_request import (
    ServiceRequest,
    ServiceRequestCreate,
    ServiceRequestStatus,
    ServiceRequestUpdate,
)
from models.status_history import HistoryEntity
from repos import projects_repo
from services import identifiers, service_requests_service, status_history
from services.identifiers import IdentifierKind, next_identifier

APRIL_30 = datetime(2025, 4, 30, 23, 0, tzinfo=UTC)
MAY_10 = datetime(2025, 5, 10, 12, 0, tzinfo=UTC)


async def create_request(db_session, project, user, *, now=MAY_10, title="leak"):
    return await service_requests_service.create_request(
        db_session,
        actor=actor_for(user),
        payload=ServiceRequestCreate(project_id=project.id, title=title, description="Water leak in room 3"),
        now=now,
    )


class TestRequestNumbers:
    @pytest.mark.asyncio
    async def test_first_requests_of_month_are_sequential(self, db_session, project, client_user):
        first = await create_request(db_session, project, client_user)
        second = await create_request(db_session, project, client_user, title="second")
        assert first.request_number == "SR-2505-0001"
        assert second.request_number == "SR-2505-0002"

    @pytest.mark.asyncio
    async def test_partition_counter_restarts_each_month(self, db_session, project, client_user, monkeypatch):
        monkeypatch.setattr(config.settings, "IDENTIFIER_SEQUENCE_MODE", identifiers.PARTITION_COUNTER)
        april = await create_request(db_session, project, client_user, now=APRIL_30)
        may = await create_request(db_session, project, client_user, now=MAY_10)
        assert april.request_number == "SR-2504-0001"
        assert may.request_number == "SR-2505-0001"

    @pytest.mark.asyncio
    async def test_global_last_continues_previous_month_sequence(self, db_session, project, client_user, monkeypatch):
        monkeypatch.setattr(config.settings, "IDENTIFIER_SEQUENCE_MODE", identifiers.GLOBAL_LAST)
        april = await create_request(db_session, project, client_user, now=APRIL_30)
        may = await create_request(db_session, project, client_user, now=MAY_10)
        assert april.request_number == "SR-2504-0001"
        assert may.request_number == "SR-2505-0002"

    @pytest.mark.asyncio
    async def test_global_last_hands_out_duplicates_before_insert(self, db_session, project, client_user):
        await create_request(db_session, project, client_user)
        first = await next_identifier(
            db_session, kind=IdentifierKind.SERVICE_REQUEST, timestamp=MAY_10, mode=identifiers.GLOBAL_LAST
        )
        second = await next_identifier(
            db_session, kind=IdentifierKind.SERVICE_REQUEST, timestamp=MAY_10, mode=identifiers.GLOBAL_LAST
        )
        assert first == second == "SR-2505-0002"

    @pytest.mark.asyncio
    async def test_partition_counter_never_repeats(self, db_session):
        first = await next_identifier(
            db_session, kind=IdentifierKind.SERVICE_REQUEST, timestamp=MAY_10, mode=identifiers.PARTITION_COUNTER
        )
        second = await next_identifier(
            db_session, kind=IdentifierKind.SERVICE_REQUEST, timestamp=MAY_10, mode=identifiers.PARTITION_COUNTER
        )
        assert (first, second) == ("SR-2505-0001", "SR-2505-0002")

    @pytest.mark.asyncio
    async def test_collision_with_existing_number_is_retried(self, db_session, project, client_user, monkeypatch):
        monkeypatch.setattr(config.settings, "IDENTIFIER_SEQUENCE_MODE", identifiers.PARTITION_COUNTER)
        db_session.add(
            ServiceRequest(
                request_number="SR-2505-0001",
                project_id=project.id,
                title="imported",
                description="imported before counters existed",
                requested_by=client_user.id,
                created_at=MAY_10,
            )
        )
        await db_session.commit()

        created = await create_request(db_session, project, client_user)

        assert created.request_number == "SR-2505-0002"
        history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=created.id
        )
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_409(self, db_session, project, client_user, monkeypatch):
        await create_request(db_session, project, client_user)
        monkeypatch.setattr(config.settings, "IDENTIFIER_MAX_RETRIES", 2)

        async def always_taken(session, *, kind, timestamp, mode=None):
            return "SR-2505-0001"

        monkeypatch.setattr(identifiers, "next_identifier", always_taken)

        with pytest.raises(HTTPException) as exc_info:
            await create_request(db_session, project, client_user, title="again")
        assert exc_info.value.status_code == status.HTTP_409_CONFLICT

        await db_session.rollback()
        result = await db_session.execute(select(ServiceRequest))
        assert len(result.scalars().all()) == 1


class TestCreation:
    @pytest.mark.asyncio
    async def test_creation_seeds_history_and_metrics(self, db_session, project, client_user):
        created = await create_request(db_session, project, client_user)

        history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=created.id
        )
        assert len(history) == 1
        assert history[0].position == 0
        assert history[0].status == ServiceRequestStatus.REQUESTED.value
        assert history[0].changed_by == client_user.id
        assert history[0].notes == "Solicitud creada"

        stored_project = await projects_repo.get_by_id(db_session, project_id=project.id)
        assert stored_project.total_requests == 1
        assert stored_project.open_requests == 1
        assert stored_project.completed_requests == 0

    @pytest.mark.asyncio
    async def test_outsider_cannot_create(self, db_session, project, other_client):
        with pytest.raises(HTTPException) as exc_info:
            await create_request(db_session, project, other_client)
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_client_cannot_change_status(self, db_session, project, client_user):
        created = await create_request(db_session, project, client_user)
        with pytest.raises(HTTPException) as exc_info:
            await service_requests_service.change_status(
                db_session,
                actor=actor_for(client_user),
                service_request_id=created.id,
                new_status=ServiceRequestStatus.CANCELLED,
            )
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_only_assignee_technician_changes_status(
        self, db_session, project, admin_user, client_user, technician, other_technician
    ):
        created = await create_request(db_session, project, client_user)
        await service_requests_service.update_request(
            db_session,
            actor=actor_for(admin_user),
            service_request_id=created.id,
            payload=ServiceRequestUpdate(assigned_to=technician.id),
        )

        with pytest.raises(HTTPException) as exc_info:
            await service_requests_service.change_status(
                db_session,
                actor=actor_for(other_technician),
                service_request_id=created.id,
                new_status=ServiceRequestStatus.ACCEPTED,
            )
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

        updated = await service_requests_service.change_status(
            db_session,
            actor=actor_for(technician),
            service_request_id=created.id,
            new_status=ServiceRequestStatus.ACCEPTED,
            notes="On my way",
        )
        assert updated.status == ServiceRequestStatus.ACCEPTED.value

        history = await status_history.list_history(
            db_session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=created.id
        )
        assert [entry.status for entry in history] == [
            ServiceRequestStatus.REQUESTED.value,
            ServiceRequestStatus.ACCEPTED.value,
        ]
        assert [entry.position for entry in history] == [0, 1]
        assert history[-1].notes == "On my way"

    @pytest.mark.asyncio
    async def test_illegal_transition_is_rejected(self, db_session, project, admin_user, client_user):
        created = await create_request(db_session, project, client_user)
        with pytest.raises(HTTPException) as exc_info:
            await service_requests_service.change_status(
                db_session,
                actor=actor_for(admin_user),
                service_request_id=created.id,
                new_status=ServiceRequestStatus.COMPLETED,
            )
        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_completion_updates_metrics(self, db_session, project, admin_user, client_user):
        created = await create_request(db_session, project, client_user)
        for new_status in (ServiceRequestStatus.ACCEPTED, ServiceRequestStatus.COMPLETED):
            await service_requests_service.change_status(
                db_session,
                actor=actor_for(admin_user),
                service_request_id=created.id,
                new_status=new_status,
            )

        assert created.completion_date is not None
        stored_project = await projects_repo.get_by_id(db_session, project_id=project.id)
        assert stored_project.completed_requests == 1
        assert stored_project.open_requests == 0

    @pytest.mark.asyncio
    async def test_assigning_a_client_is_rejected(self, db_session, project, admin_user, client_user):
        created = await create_request(db_session, project, client_user)
        with pytest.raises(HTTPException) as exc_info:
            await service_requests_service.update_request(
                db_session,
                actor=actor_for(admin_user),
                service_request_id=created.id,
                payload=ServiceRequestUpdate(assigned_to=client_user.id),
            )
        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST
