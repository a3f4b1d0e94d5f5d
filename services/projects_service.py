"""Service layer for Project business logic."""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from db import utcnow
from models.attachment import Attachment, AttachmentOwner, AttachmentResponse, StoredFile
from models.notification import EventType, NotificationEvent
from models.project import (
    Project,
    ProjectCreate,
    ProjectDetailResponse,
    ProjectMetrics,
    ProjectMetricsSummary,
    ProjectResponse,
    ProjectStatus,
    ProjectUpdate,
    TechnicianProjectCount,
)
from models.service_request import ServiceRequestStatus
from models.status_history import HistoryEntity, StatusHistoryEntry
from models.user import User, UserRole
from repos import attachments_repo, projects_repo, service_requests_repo, status_history_repo, users_repo
from services import lifecycle, notifications_service, status_history
from services.access_policy import can_access_project, project_list_scope, require, require_admin

logger = logging.getLogger(__name__)

_PROJECT_FIELDS = (
    "name",
    "location",
    "description",
    "order_number",
    "identification_number",
    "company_responsible",
    "client_contact_name",
    "client_company_name",
    "cost_center",
    "start_date",
    "end_date",
)


def to_response(project: Project, client_ids: list[UUID]) -> ProjectResponse:
    """Build the API representation of a project."""
    data = {field: getattr(project, field) for field in _PROJECT_FIELDS}
    return ProjectResponse(
        id=project.id,
        reception_type=project.reception_type,
        technician_id=project.technician_id,
        client_ids=client_ids,
        status=project.status,
        metrics=ProjectMetrics(
            total_requests=project.total_requests or 0,
            open_requests=project.open_requests or 0,
            completed_requests=project.completed_requests or 0,
        ),
        created_at=project.created_at,
        updated_at=project.updated_at,
        **data,
    )


async def get_project_or_404(session: AsyncSession, project_id: UUID) -> Project:
    project = await projects_repo.get_by_id(session, project_id=project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )
    return project


async def get_accessible_project(session: AsyncSession, *, actor: ActorContext, project_id: UUID) -> Project:
    """
    Load a project the actor may see.

    Raises:
        HTTPException: 404 if missing, 403 without access
    """
    project = await get_project_or_404(session, project_id)
    require(
        await can_access_project(session, project=project, actor=actor),
        "You do not have permission to access this project",
    )
    return project


async def _require_user_with_role(session: AsyncSession, user_id: UUID, role: UserRole) -> User:
    user = await users_repo.get_by_id(session, user_id=user_id)
    if not user:
        label = "Technician" if role is UserRole.TECHNICIAN else "Client"
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} not found",
        )
    if user.role != role.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"User {user_id} does not have the {role.value} role",
        )
    return user


async def _ensure_order_number_free(
    session: AsyncSession,
    order_number: str | None,
    project_id: UUID | None = None,
) -> None:
    if not order_number:
        return
    existing = await projects_repo.get_by_order_number(session, order_number=order_number)
    if existing and existing.id != project_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A project with this order number already exists",
        )


async def _record_assignment(
    session: AsyncSession,
    *,
    project: Project,
    user_id: UUID,
    role: UserRole,
    actor: ActorContext,
) -> NotificationEvent:
    return await notifications_service.record_event(
        session,
        event_type=EventType.PROJECT_ASSIGNED,
        actor_id=actor.user_id,
        payload={
            "project_id": project.id,
            "project_name": project.name,
            "user_id": user_id,
            "role": role.value,
        },
    )


async def create_project(
    session: AsyncSession,
    *,
    actor: ActorContext,
    payload: ProjectCreate,
    now: datetime | None = None,
) -> ProjectResponse:
    """
    Create a project (admin only) with its technician and clients.

    Business rules:
    - order_number is unique when given
    - technician_id must point at a technician, client_ids at clients
    - the creation status is recorded as the first history entry
    - every assigned user is notified

    Raises:
        HTTPException: 403 if not admin, 404/400 for bad users, 409 on duplicate order number
    """
    require_admin(actor, "Only administrators can create projects")
    await _ensure_order_number_free(session, payload.order_number)

    if payload.technician_id:
        await _require_user_with_role(session, payload.technician_id, UserRole.TECHNICIAN)
    client_ids = list(dict.fromkeys(payload.client_ids))
    for client_id in client_ids:
        await _require_user_with_role(session, client_id, UserRole.CLIENT)

    now = now or utcnow()
    data = payload.model_dump(exclude={"client_ids", "technician_id", "status", "reception_type"})
    project = Project(
        **data,
        reception_type=payload.reception_type.value,
        status=payload.status.value,
        technician_id=payload.technician_id,
        created_at=now,
    )
    project = await projects_repo.create(session, project)
    await projects_repo.replace_clients(session, project_id=project.id, user_ids=client_ids)
    await status_history.seed_history(
        session,
        entity_type=HistoryEntity.PROJECT,
        entity_id=project.id,
        status=project.status,
        created_by=actor.user_id,
        changed_at=now,
    )

    events = []
    if project.technician_id:
        events.append(
            await _record_assignment(
                session, project=project, user_id=project.technician_id, role=UserRole.TECHNICIAN, actor=actor
            )
        )
    for client_id in client_ids:
        events.append(
            await _record_assignment(session, project=project, user_id=client_id, role=UserRole.CLIENT, actor=actor)
        )

    await session.commit()
    await notifications_service.dispatch(session, events)
    return to_response(project, client_ids)


async def list_projects(
    session: AsyncSession,
    *,
    actor: ActorContext,
    status_filter: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ProjectResponse], int]:
    """
    List the projects visible to the actor.

    Returns:
        Tuple of (page of projects, total count)
    """
    projects, total = await projects_repo.list_projects(
        session,
        status=status_filter,
        search=search,
        offset=(page - 1) * limit,
        limit=limit,
        **project_list_scope(actor),
    )
    clients = await projects_repo.list_client_ids_for_projects(
        session,
        project_ids=[project.id for project in projects],
    )
    return [to_response(project, clients.get(project.id, [])) for project in projects], total


async def get_project(session: AsyncSession, *, actor: ActorContext, project_id: UUID) -> ProjectDetailResponse:
    """Project with milestones, photos, documents and location points."""
    # Imported here: project_assets_service imports this module
    from services import project_assets_service

    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    client_ids = await projects_repo.list_client_ids(session, project_id=project.id)
    photos = await attachments_repo.list_for_owner(
        session, owner_type=AttachmentOwner.PROJECT_PHOTO.value, owner_id=project.id
    )
    documents = await attachments_repo.list_for_owner(
        session, owner_type=AttachmentOwner.PROJECT_DOCUMENT.value, owner_id=project.id
    )
    base = to_response(project, client_ids)
    return ProjectDetailResponse(
        **base.model_dump(),
        milestones=await project_assets_service.milestone_responses(session, project_id=project.id),
        photos=[AttachmentResponse.model_validate(photo) for photo in photos],
        documents=[AttachmentResponse.model_validate(document) for document in documents],
        location_points=await project_assets_service.location_point_responses(session, project_id=project.id),
    )


async def update_project(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    payload: ProjectUpdate,
) -> ProjectResponse:
    """
    Update project fields (admin only). Status changes go through change_status.

    Newly assigned technicians and clients are notified.
    """
    require_admin(actor, "Only administrators can update projects")
    project = await get_project_or_404(session, project_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("order_number"):
        await _ensure_order_number_free(session, data["order_number"], project.id)

    events = []
    technician_id = data.pop("technician_id", None)
    if technician_id and technician_id != project.technician_id:
        await _require_user_with_role(session, technician_id, UserRole.TECHNICIAN)
        project.technician_id = technician_id
        events.append(
            await _record_assignment(
                session, project=project, user_id=technician_id, role=UserRole.TECHNICIAN, actor=actor
            )
        )

    new_client_ids = data.pop("client_ids", None)
    current_client_ids = await projects_repo.list_client_ids(session, project_id=project.id)
    if new_client_ids is not None:
        new_client_ids = list(dict.fromkeys(new_client_ids))
        for client_id in new_client_ids:
            await _require_user_with_role(session, client_id, UserRole.CLIENT)
        await projects_repo.replace_clients(session, project_id=project.id, user_ids=new_client_ids)
        for client_id in new_client_ids:
            if client_id not in current_client_ids:
                events.append(
                    await _record_assignment(
                        session, project=project, user_id=client_id, role=UserRole.CLIENT, actor=actor
                    )
                )
        current_client_ids = new_client_ids

    if data.get("reception_type") is not None:
        data["reception_type"] = data["reception_type"].value
    for field, value in data.items():
        if value is not None:
            setattr(project, field, value)

    project = await projects_repo.save(session, project)
    await session.commit()
    await notifications_service.dispatch(session, events)
    return to_response(project, current_client_ids)


async def delete_project(session: AsyncSession, *, actor: ActorContext, project_id: UUID) -> None:
    """Delete a project (admin only) along with its photos, documents and history."""
    require_admin(actor, "Only administrators can delete projects")
    project = await get_project_or_404(session, project_id)

    for owner_type in (AttachmentOwner.PROJECT_PHOTO, AttachmentOwner.PROJECT_DOCUMENT):
        await attachments_repo.delete_for_owner(session, owner_type=owner_type.value, owner_id=project.id)
    await status_history_repo.delete_entries(
        session, entity_type=HistoryEntity.PROJECT.value, entity_id=project.id
    )
    await projects_repo.delete(session, project)
    await session.commit()
    logger.info("Deleted project %s", project_id)


async def change_status(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    new_status: ProjectStatus,
    comments: str | None = None,
    now: datetime | None = None,
) -> ProjectResponse:
    """
    Change a project's status (admin only), recording it in the history.

    Any status may follow any other; setting the current status is a no-op.
    """
    require_admin(actor, "Only administrators can change a project's status")
    project = await get_project_or_404(session, project_id)
    old_status = project.status

    changed = await lifecycle.transition(
        session,
        entity_type=HistoryEntity.PROJECT,
        entity=project,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=new_status.value,
            notes=comments or f"Estado cambiado de {old_status} a {new_status.value}",
        ),
        changed_at=now,
    )
    events = []
    if changed:
        events.append(
            await notifications_service.record_event(
                session,
                event_type=EventType.PROJECT_STATUS_CHANGED,
                actor_id=actor.user_id,
                payload={
                    "project_id": project.id,
                    "project_name": project.name,
                    "old_status": old_status,
                    "new_status": new_status.value,
                },
            )
        )
        project = await projects_repo.save(session, project)
        await session.commit()
        await notifications_service.dispatch(session, events)

    client_ids = await projects_repo.list_client_ids(session, project_id=project.id)
    return to_response(project, client_ids)


async def assign_technician(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    technician_id: UUID,
) -> ProjectResponse:
    """Set the project's technician (admin only) and notify them."""
    require_admin(actor, "Only administrators can assign technicians")
    await _require_user_with_role(session, technician_id, UserRole.TECHNICIAN)
    project = await get_project_or_404(session, project_id)

    events = []
    if project.technician_id != technician_id:
        project.technician_id = technician_id
        project = await projects_repo.save(session, project)
        events.append(
            await _record_assignment(
                session, project=project, user_id=technician_id, role=UserRole.TECHNICIAN, actor=actor
            )
        )
        await session.commit()
        await notifications_service.dispatch(session, events)

    client_ids = await projects_repo.list_client_ids(session, project_id=project.id)
    return to_response(project, client_ids)


async def add_client(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    client_id: UUID,
) -> ProjectResponse:
    """
    Give a client access to a project (admin only).

    Raises:
        HTTPException: 400 if the client is already a member
    """
    require_admin(actor, "Only administrators can add clients to projects")
    await _require_user_with_role(session, client_id, UserRole.CLIENT)
    project = await get_project_or_404(session, project_id)

    client_ids = await projects_repo.list_client_ids(session, project_id=project.id)
    if client_id in client_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The client is already associated with this project",
        )

    await projects_repo.add_client(session, project_id=project.id, user_id=client_id)
    event = await _record_assignment(session, project=project, user_id=client_id, role=UserRole.CLIENT, actor=actor)
    await session.commit()
    await notifications_service.dispatch(session, [event])
    return to_response(project, [*client_ids, client_id])


async def get_history(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
) -> list[StatusHistoryEntry]:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    return await status_history.list_history(session, entity_type=HistoryEntity.PROJECT, entity_id=project.id)


async def refresh_metrics(session: AsyncSession, *, project_id: UUID) -> Project | None:
    """
    Recompute request counters of a project from its service requests.

    Completed requests count as completed, cancelled ones only towards the
    total, everything else as open. Called after every service request save;
    the caller commits.
    """
    project = await projects_repo.get_by_id(session, project_id=project_id)
    if project is None:
        return None
    counts = await service_requests_repo.count_by_status_for_project(session, project_id=project_id)
    project.total_requests = sum(counts.values())
    project.completed_requests = counts.get(ServiceRequestStatus.COMPLETED.value, 0)
    project.open_requests = (
        project.total_requests
        - project.completed_requests
        - counts.get(ServiceRequestStatus.CANCELLED.value, 0)
    )
    await session.flush()
    return project


async def get_metrics_summary(
    session: AsyncSession,
    *,
    actor: ActorContext,
    now: datetime | None = None,
) -> ProjectMetricsSummary:
    """Totals by status and by technician plus projects created in the last 30 days (admin only)."""
    require_admin(actor, "Only administrators can view project metrics")
    now = now or utcnow()
    by_technician = await projects_repo.count_by_technician(session, limit=10)
    return ProjectMetricsSummary(
        total_projects=await projects_repo.count_all(session),
        by_status=await projects_repo.count_by_status(session),
        by_technician=[
            TechnicianProjectCount(technician_id=technician_id, name=name, count=count)
            for technician_id, name, count in by_technician
        ],
        recent_projects=await projects_repo.count_created_since(session, since=now - timedelta(days=30)),
    )


def _require_project_editor(project: Project, actor: ActorContext) -> None:
    require(
        actor.is_admin or (actor.is_technician and project.technician_id == actor.user_id),
        "You do not have permission to modify this project",
    )


async def add_files(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    owner_type: AttachmentOwner,
    files: list[StoredFile],
    description: str | None = None,
) -> list[Attachment]:
    """
    Attach uploaded photos or documents to a project (admin or its technician).

    Raises:
        HTTPException: 400 when no file was uploaded
    """
    project = await get_project_or_404(session, project_id)
    _require_project_editor(project, actor)
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files were uploaded",
        )
    attachments = await attachments_repo.add_many(
        session,
        owner_type=owner_type.value,
        owner_id=project.id,
        files=files,
        uploaded_by=actor.user_id,
        description=description,
    )
    await session.commit()
    return attachments


async def remove_file(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    owner_type: AttachmentOwner,
    attachment_id: UUID,
) -> Attachment:
    """
    Detach one photo or document from a project and return it so the caller can drop the file.

    Raises:
        HTTPException: 404 if the file is not attached to this project
    """
    project = await get_project_or_404(session, project_id)
    _require_project_editor(project, actor)
    attachment = await attachments_repo.get_by_id(
        session,
        attachment_id=attachment_id,
        owner_type=owner_type.value,
        owner_id=project.id,
    )
    if not attachment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found in this project",
        )
    await attachments_repo.delete(session, attachment)
    await session.commit()
    return attachment
