"""Access control policy for projects and the records hanging off them.

Project access is the single source of truth: a service request or a
rendition is visible to whoever can see its project, minus the overrides
below.
"""

from collections.abc import Collection
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from models.project import Project
from models.rendition import Rendition, RenditionStatus
from models.service_request import ServiceRequest
from models.user import UserRole
from repos import projects_repo

REVIEWED_RENDITION_STATUSES = (RenditionStatus.APPROVED.value, RenditionStatus.REJECTED.value)


def has_access(
    project: Project,
    subject_id: UUID,
    role: str,
    *,
    client_ids: Collection[UUID],
) -> bool:
    """
    Decide whether a user may see a project.

    Args:
        project: Project being accessed
        subject_id: ID of the user asking
        role: Role of the user asking
        client_ids: Client members of the project

    Returns:
        True for admins, for the project's technician and for its clients
    """
    if role == UserRole.ADMIN.value:
        return True
    if role == UserRole.TECHNICIAN.value:
        return project.technician_id is not None and project.technician_id == subject_id
    if role == UserRole.CLIENT.value:
        return subject_id in client_ids
    return False


async def can_access_project(session: AsyncSession, *, project: Project, actor: ActorContext) -> bool:
    """has_access with the project's client set loaded from the database."""
    if actor.is_admin:
        return True
    client_ids = await projects_repo.list_client_ids(session, project_id=project.id)
    return has_access(project, actor.user_id, actor.role, client_ids=client_ids)


def require(allowed: bool, reason: str) -> None:
    """
    Raise 403 with a human-readable reason unless allowed.

    Raises:
        HTTPException: 403 when allowed is False
    """
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=reason)


def require_admin(actor: ActorContext, reason: str = "Administrator role required") -> None:
    require(actor.is_admin, reason)


def can_change_request_status(service_request: ServiceRequest, actor: ActorContext) -> bool:
    """Admins, or the technician the request is currently assigned to."""
    if actor.is_admin:
        return True
    return (
        actor.is_technician
        and service_request.assigned_to is not None
        and service_request.assigned_to == actor.user_id
    )


def can_create_rendition(
    service_request: ServiceRequest,
    actor: ActorContext,
    *,
    project_access: bool,
) -> bool:
    """Technicians only; an assigned request accepts renditions from its assignee alone."""
    if not actor.is_technician:
        return False
    if service_request.assigned_to is not None:
        return service_request.assigned_to == actor.user_id
    return project_access


def can_read_rendition(rendition: Rendition, actor: ActorContext) -> bool:
    """Clients never see renditions; technicians see their own."""
    if actor.is_admin:
        return True
    if actor.is_technician:
        return rendition.technician_id == actor.user_id
    return False


def can_modify_rendition(rendition: Rendition, actor: ActorContext) -> bool:
    """The author (until reviewed) or an admin."""
    if actor.is_admin:
        return True
    return (
        actor.is_technician
        and rendition.technician_id == actor.user_id
        and rendition.status not in REVIEWED_RENDITION_STATUSES
    )


def can_delete_rendition(rendition: Rendition, actor: ActorContext) -> bool:
    """Approved renditions are never deleted; otherwise the author or an admin."""
    if rendition.status == RenditionStatus.APPROVED.value:
        return False
    return can_modify_rendition(rendition, actor)


def project_list_scope(actor: ActorContext) -> dict:
    """Filters restricting project listings to what the actor can see."""
    if actor.is_technician:
        return {"technician_id": actor.user_id}
    if actor.is_client:
        return {"client_id": actor.user_id}
    return {}


def request_list_scope(actor: ActorContext) -> dict:
    """Clients list the requests they raised, technicians the ones assigned to them."""
    if actor.is_client:
        return {"requested_by": actor.user_id}
    if actor.is_technician:
        return {"assigned_to": actor.user_id}
    return {}


def rendition_list_scope(actor: ActorContext) -> dict:
    if actor.is_technician:
        return {"technician_id": actor.user_id}
    return {}
