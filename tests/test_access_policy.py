"""Tests for the access policy predicates."""

from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import HTTPException, status

from api.actor import ActorContext
from models.rendition import RenditionStatus
from models.user import UserRole
from services.access_policy import (
    can_change_request_status,
    can_create_rendition,
    can_delete_rendition,
    can_modify_rendition,
    can_read_rendition,
    has_access,
    request_list_scope,
    require,
)

TECH = uuid4()
OTHER_TECH = uuid4()
CLIENT = uuid4()


def actor(user_id, role: UserRole) -> ActorContext:
    return ActorContext(user_id=user_id, role=role.value)


@pytest.fixture
def project():
    return SimpleNamespace(id=uuid4(), technician_id=TECH)


class TestHasAccess:
    def test_admin_sees_everything(self, project):
        assert has_access(project, uuid4(), UserRole.ADMIN.value, client_ids=[])

    def test_technician_only_their_project(self, project):
        assert has_access(project, TECH, UserRole.TECHNICIAN.value, client_ids=[])
        assert not has_access(project, OTHER_TECH, UserRole.TECHNICIAN.value, client_ids=[])

    def test_unassigned_project_hidden_from_technicians(self):
        unassigned = SimpleNamespace(id=uuid4(), technician_id=None)
        assert not has_access(unassigned, TECH, UserRole.TECHNICIAN.value, client_ids=[])

    def test_client_needs_membership(self, project):
        assert has_access(project, CLIENT, UserRole.CLIENT.value, client_ids=[CLIENT])
        assert not has_access(project, CLIENT, UserRole.CLIENT.value, client_ids=[uuid4()])

    def test_technician_id_in_client_list_does_not_grant_client_role(self, project):
        assert not has_access(project, OTHER_TECH, UserRole.TECHNICIAN.value, client_ids=[OTHER_TECH])


class TestRequestPredicates:
    def test_only_assignee_or_admin_changes_status(self):
        sr = SimpleNamespace(assigned_to=TECH)
        assert can_change_request_status(sr, actor(TECH, UserRole.TECHNICIAN))
        assert can_change_request_status(sr, actor(uuid4(), UserRole.ADMIN))
        assert not can_change_request_status(sr, actor(OTHER_TECH, UserRole.TECHNICIAN))
        assert not can_change_request_status(SimpleNamespace(assigned_to=None), actor(TECH, UserRole.TECHNICIAN))

    def test_assigned_request_only_accepts_assignee_renditions(self):
        sr = SimpleNamespace(assigned_to=OTHER_TECH)
        assert not can_create_rendition(sr, actor(TECH, UserRole.TECHNICIAN), project_access=True)
        assert can_create_rendition(sr, actor(OTHER_TECH, UserRole.TECHNICIAN), project_access=False)

    def test_unassigned_request_falls_back_to_project_access(self):
        sr = SimpleNamespace(assigned_to=None)
        assert can_create_rendition(sr, actor(TECH, UserRole.TECHNICIAN), project_access=True)
        assert not can_create_rendition(sr, actor(TECH, UserRole.TECHNICIAN), project_access=False)

    def test_admins_and_clients_never_file_renditions(self):
        sr = SimpleNamespace(assigned_to=None)
        assert not can_create_rendition(sr, actor(uuid4(), UserRole.ADMIN), project_access=True)
        assert not can_create_rendition(sr, actor(CLIENT, UserRole.CLIENT), project_access=True)

    def test_list_scopes(self):
        assert request_list_scope(actor(CLIENT, UserRole.CLIENT)) == {"requested_by": CLIENT}
        assert request_list_scope(actor(TECH, UserRole.TECHNICIAN)) == {"assigned_to": TECH}
        assert request_list_scope(actor(uuid4(), UserRole.ADMIN)) == {}


class TestRenditionPredicates:
    def rendition(self, status_value: RenditionStatus):
        return SimpleNamespace(technician_id=TECH, status=status_value.value)

    def test_clients_never_read_renditions(self):
        assert not can_read_rendition(self.rendition(RenditionStatus.SUBMITTED), actor(CLIENT, UserRole.CLIENT))

    def test_author_reads_and_modifies_until_reviewed(self):
        author = actor(TECH, UserRole.TECHNICIAN)
        assert can_read_rendition(self.rendition(RenditionStatus.APPROVED), author)
        assert can_modify_rendition(self.rendition(RenditionStatus.SUBMITTED), author)
        assert not can_modify_rendition(self.rendition(RenditionStatus.APPROVED), author)
        assert not can_modify_rendition(self.rendition(RenditionStatus.REJECTED), author)

    def test_other_technician_locked_out(self):
        other = actor(OTHER_TECH, UserRole.TECHNICIAN)
        assert not can_read_rendition(self.rendition(RenditionStatus.SUBMITTED), other)
        assert not can_modify_rendition(self.rendition(RenditionStatus.SUBMITTED), other)

    def test_approved_renditions_cannot_be_deleted_even_by_admin(self):
        admin = actor(uuid4(), UserRole.ADMIN)
        assert not can_delete_rendition(self.rendition(RenditionStatus.APPROVED), admin)
        assert can_delete_rendition(self.rendition(RenditionStatus.REJECTED), admin)


def test_require_raises_403_with_reason():
    with pytest.raises(HTTPException) as exc_info:
        require(False, "nope")
    assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN
    assert exc_info.value.detail == "nope"
    require(True, "fine")
