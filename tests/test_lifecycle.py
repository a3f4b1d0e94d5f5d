"""Tests for status transition tables and the transition operation."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest
from fastapi import HTTPException, status

from models.rendition import RenditionStatus
from models.service_request import ServiceRequestStatus
from models.status_history import HistoryEntity
from repos import status_history_repo
from services import lifecycle, status_history
from services.lifecycle import TransitionRequest, is_allowed

SR = HistoryEntity.SERVICE_REQUEST
RND = HistoryEntity.RENDITION


class TestTransitionTables:
    @pytest.mark.parametrize(
        "current,new",
        [
            (ServiceRequestStatus.REQUESTED, ServiceRequestStatus.UNDER_REVIEW),
            (ServiceRequestStatus.REQUESTED, ServiceRequestStatus.ACCEPTED),
            (ServiceRequestStatus.UNDER_REVIEW, ServiceRequestStatus.ACCEPTED),
            (ServiceRequestStatus.ACCEPTED, ServiceRequestStatus.COMPLETED),
            (ServiceRequestStatus.ACCEPTED, ServiceRequestStatus.CANCELLED),
        ],
    )
    def test_allowed_request_moves(self, current, new):
        assert is_allowed(SR, current.value, new.value)

    @pytest.mark.parametrize(
        "current,new",
        [
            (ServiceRequestStatus.REQUESTED, ServiceRequestStatus.COMPLETED),
            (ServiceRequestStatus.COMPLETED, ServiceRequestStatus.ACCEPTED),
            (ServiceRequestStatus.CANCELLED, ServiceRequestStatus.REQUESTED),
            (ServiceRequestStatus.UNDER_REVIEW, ServiceRequestStatus.REQUESTED),
        ],
    )
    def test_forbidden_request_moves(self, current, new):
        assert not is_allowed(SR, current.value, new.value)

    def test_rendition_cannot_be_approved_while_pending(self):
        assert not is_allowed(RND, RenditionStatus.PENDING.value, RenditionStatus.APPROVED.value)

    def test_rendition_decisions_require_review(self):
        assert is_allowed(RND, RenditionStatus.SUBMITTED.value, RenditionStatus.UNDER_REVIEW.value)
        for decision in (RenditionStatus.APPROVED, RenditionStatus.REJECTED):
            assert not is_allowed(RND, RenditionStatus.SUBMITTED.value, decision.value)
            assert is_allowed(RND, RenditionStatus.UNDER_REVIEW.value, decision.value)

    def test_reviewed_renditions_are_terminal(self):
        for terminal in (RenditionStatus.APPROVED, RenditionStatus.REJECTED):
            assert not any(is_allowed(RND, terminal.value, other.value) for other in RenditionStatus)

    def test_projects_move_freely(self):
        assert is_allowed(HistoryEntity.PROJECT, "Finalizado", "En progreso")


class TestTransition:
    @pytest.mark.asyncio
    async def test_completion_sets_date_and_appends_history(self, db_session, project, client_user, admin_user):
        from conftest import actor_for
        from models.service_request import ServiceRequestCreate
        from services import service_requests_service

        sr = await service_requests_service.create_request(
            db_session,
            actor=actor_for(client_user),
            payload=ServiceRequestCreate(project_id=project.id, title="leak", description="water leak"),
        )
        sr.status = ServiceRequestStatus.ACCEPTED.value
        when = datetime(2025, 5, 12, 9, 0, tzinfo=UTC)

        changed = await lifecycle.transition(
            db_session,
            entity_type=SR,
            entity=sr,
            request=TransitionRequest(actor_id=admin_user.id, new_status=ServiceRequestStatus.COMPLETED.value),
            changed_at=when,
        )

        assert changed is True
        assert sr.status == ServiceRequestStatus.COMPLETED.value
        assert sr.completion_date == when
        history = await status_history.list_history(db_session, entity_type=SR, entity_id=sr.id)
        assert [entry.position for entry in history] == [0, 1]
        assert history[-1].status == ServiceRequestStatus.COMPLETED.value
        assert history[-1].changed_by == admin_user.id

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, db_session):
        class Entity:
            id = uuid4()
            status = RenditionStatus.SUBMITTED.value

        changed = await lifecycle.transition(
            db_session,
            entity_type=RND,
            entity=Entity(),
            request=TransitionRequest(actor_id=None, new_status=RenditionStatus.SUBMITTED.value),
        )
        assert changed is False
        assert await status_history.list_history(db_session, entity_type=RND, entity_id=Entity.id) == []

    @pytest.mark.asyncio
    async def test_illegal_move_raises_400(self, db_session):
        class Entity:
            id = uuid4()
            status = RenditionStatus.APPROVED.value

        with pytest.raises(HTTPException) as exc_info:
            await lifecycle.transition(
                db_session,
                entity_type=RND,
                entity=Entity(),
                request=TransitionRequest(actor_id=None, new_status=RenditionStatus.PENDING.value),
            )
        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST


class TestHistoryAppend:
    @pytest.mark.asyncio
    async def test_taken_position_is_retried(self, db_session, monkeypatch):
        entity_id = uuid4()
        await status_history.append_history(
            db_session, entity_type=RND, entity_id=entity_id, status=RenditionStatus.PENDING.value, changed_by=None
        )
        real_count = status_history_repo.count_entries
        calls = []

        async def stale_once(session, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                return 0
            return await real_count(session, **kwargs)

        monkeypatch.setattr(status_history_repo, "count_entries", stale_once)

        entry = await status_history.append_history(
            db_session, entity_type=RND, entity_id=entity_id, status=RenditionStatus.SUBMITTED.value, changed_by=None
        )

        assert entry.position == 1
        assert len(calls) == 2
        history = await status_history.list_history(db_session, entity_type=RND, entity_id=entity_id)
        assert [(e.position, e.status) for e in history] == [
            (0, RenditionStatus.PENDING.value),
            (1, RenditionStatus.SUBMITTED.value),
        ]

    @pytest.mark.asyncio
    async def test_persistent_collision_is_conflict(self, db_session, monkeypatch):
        entity_id = uuid4()
        await status_history.append_history(
            db_session, entity_type=RND, entity_id=entity_id, status=RenditionStatus.PENDING.value, changed_by=None
        )

        async def always_stale(session, **kwargs):
            return 0

        monkeypatch.setattr(status_history_repo, "count_entries", always_stale)

        with pytest.raises(HTTPException) as exc_info:
            await status_history.append_history(
                db_session,
                entity_type=RND,
                entity_id=entity_id,
                status=RenditionStatus.SUBMITTED.value,
                changed_by=None,
            )
        assert exc_info.value.status_code == status.HTTP_409_CONFLICT
