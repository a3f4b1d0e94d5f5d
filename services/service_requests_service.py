"""Service layer for ServiceRequest business logic."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from db import utcnow
from models.attachment import Attachment, AttachmentOwner, AttachmentResponse, StoredFile
from models.notification import EventType
from models.project import Project
from models.service_request import (
    CommentResponse,
    ServiceRequest,
    ServiceRequestComment,
    ServiceRequestCreate,
    ServiceRequestDetailResponse,
    ServiceRequestResponse,
    ServiceRequestStatus,
    ServiceRequestUpdate,
)
from models.status_history import HistoryEntity, StatusHistoryEntry, StatusHistoryEntryResponse
from models.user import UserRole
from repos import (
    attachments_repo,
    projects_repo,
    renditions_repo,
    service_requests_repo,
    status_history_repo,
    users_repo,
)
from services import lifecycle, notifications_service, projects_service, status_history
from services.access_policy import (
    can_access_project,
    can_change_request_status,
    request_list_scope,
    require,
    require_admin,
)
from services.identifiers import IdentifierKind, insert_with_identifier

logger = logging.getLogger(__name__)


async def get_request_or_404(session: AsyncSession, service_request_id: UUID) -> ServiceRequest:
    service_request = await service_requests_repo.get_by_id(session, service_request_id=service_request_id)
    if not service_request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service request not found",
        )
    return service_request


async def get_accessible_request(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
    reason: str = "You do not have permission to view this service request",
) -> tuple[ServiceRequest, Project]:
    """
    Load a request whose project the actor can see.

    Raises:
        HTTPException: 404 if missing, 403 without project access
    """
    service_request = await get_request_or_404(session, service_request_id)
    project = await projects_repo.get_by_id(session, project_id=service_request.project_id)
    require(
        project is not None and await can_access_project(session, project=project, actor=actor),
        reason,
    )
    return service_request, project


def _status_event_payload(service_request: ServiceRequest, old_status: str) -> dict:
    return {
        "service_request_id": service_request.id,
        "request_number": service_request.request_number,
        "old_status": old_status,
        "new_status": service_request.status,
        "requested_by": service_request.requested_by,
        "assigned_to": service_request.assigned_to,
    }


async def create_request(
    session: AsyncSession,
    *,
    actor: ActorContext,
    payload: ServiceRequestCreate,
    now: datetime | None = None,
) -> ServiceRequest:
    """
    Raise a service request on a project the actor can access.

    Business rules:
    - request_number is generated as SR-YYMM-NNNN (retried on collision)
    - the creation entry is the first history entry
    - project metrics are recomputed
    - active admins and the project's technician are notified

    Raises:
        HTTPException: 404 if the project is missing, 403 without access, 409 if no number could be allocated
    """
    project = await projects_service.get_project_or_404(session, payload.project_id)
    require(
        await can_access_project(session, project=project, actor=actor),
        "You do not have permission to create requests in this project",
    )

    now = now or utcnow()
    location = payload.location
    longitude, latitude = (location.coordinates if location and location.coordinates else (None, None))

    async def _insert(request_number: str) -> ServiceRequest:
        service_request = ServiceRequest(
            request_number=request_number,
            project_id=project.id,
            title=payload.title,
            description=payload.description,
            priority=payload.priority.value,
            request_type=payload.request_type.value,
            status=ServiceRequestStatus.REQUESTED.value,
            address=location.address if location else None,
            longitude=longitude,
            latitude=latitude,
            requested_by=actor.user_id,
            created_at=now,
        )
        service_request = await service_requests_repo.create(session, service_request)
        await status_history.seed_history(
            session,
            entity_type=HistoryEntity.SERVICE_REQUEST,
            entity_id=service_request.id,
            status=service_request.status,
            created_by=actor.user_id,
            changed_at=now,
        )
        return service_request

    service_request = await insert_with_identifier(
        session,
        kind=IdentifierKind.SERVICE_REQUEST,
        timestamp=now,
        insert=_insert,
    )
    await projects_service.refresh_metrics(session, project_id=project.id)
    event = await notifications_service.record_event(
        session,
        event_type=EventType.REQUEST_CREATED,
        actor_id=actor.user_id,
        payload={
            "service_request_id": service_request.id,
            "request_number": service_request.request_number,
            "title": service_request.title,
            "project_id": project.id,
            "technician_id": project.technician_id,
        },
    )
    await session.commit()
    logger.info("Created service request %s on project %s", service_request.request_number, project.id)
    await notifications_service.dispatch(session, [event])
    return service_request


async def list_requests(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID | None = None,
    status_filter: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ServiceRequest], int]:
    """Clients list their own requests, technicians the ones assigned to them, admins all."""
    return await service_requests_repo.list_requests(
        session,
        project_id=project_id,
        status=status_filter,
        priority=priority,
        search=search,
        offset=(page - 1) * limit,
        limit=limit,
        **request_list_scope(actor),
    )


async def build_detail(session: AsyncSession, service_request: ServiceRequest) -> ServiceRequestDetailResponse:
    attachments = await attachments_repo.list_for_owner(
        session, owner_type=AttachmentOwner.SERVICE_REQUEST.value, owner_id=service_request.id
    )
    comments = await service_requests_repo.list_comments(session, service_request_id=service_request.id)
    history = await status_history.list_history(
        session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=service_request.id
    )
    base = ServiceRequestResponse.model_validate(service_request)
    return ServiceRequestDetailResponse(
        **base.model_dump(),
        attachments=[AttachmentResponse.model_validate(attachment) for attachment in attachments],
        comments=[CommentResponse.model_validate(comment) for comment in comments],
        history=[StatusHistoryEntryResponse.model_validate(entry) for entry in history],
        rendition_ids=await service_requests_repo.list_rendition_ids(
            session, service_request_id=service_request.id
        ),
    )


async def get_request(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
) -> ServiceRequestDetailResponse:
    service_request, _ = await get_accessible_request(
        session, actor=actor, service_request_id=service_request_id
    )
    return await build_detail(session, service_request)


async def update_request(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
    payload: ServiceRequestUpdate,
) -> ServiceRequest:
    """
    Edit a request (admin only). A new assignee must be a technician and is notified.

    Status changes go through change_status.
    """
    require_admin(actor, "You do not have permission to update this service request")
    service_request = await get_request_or_404(session, service_request_id)

    data = payload.model_dump(exclude_unset=True)
    events = []
    assigned_to = data.pop("assigned_to", None)
    if assigned_to and assigned_to != service_request.assigned_to:
        technician = await users_repo.get_by_id(session, user_id=assigned_to)
        if not technician or technician.role != UserRole.TECHNICIAN.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Service requests can only be assigned to technicians",
            )
        service_request.assigned_to = assigned_to
        events.append(
            await notifications_service.record_event(
                session,
                event_type=EventType.REQUEST_ASSIGNED,
                actor_id=actor.user_id,
                payload={
                    "service_request_id": service_request.id,
                    "request_number": service_request.request_number,
                    "title": data.get("title") or service_request.title,
                    "assigned_to": assigned_to,
                },
            )
        )

    for field in ("priority", "request_type"):
        if data.get(field) is not None:
            data[field] = data[field].value
    for field, value in data.items():
        if value is not None:
            setattr(service_request, field, value)

    service_request = await service_requests_repo.save(session, service_request)
    await projects_service.refresh_metrics(session, project_id=service_request.project_id)
    await session.commit()
    await notifications_service.dispatch(session, events)
    return service_request


async def delete_request(session: AsyncSession, *, actor: ActorContext, service_request_id: UUID) -> None:
    """Delete a request (admin only) with its renditions, comments, files and history."""
    require_admin(actor, "You do not have permission to delete this service request")
    service_request = await get_request_or_404(session, service_request_id)
    project_id = service_request.project_id

    renditions, _ = await renditions_repo.list_renditions(session, service_request_id=service_request.id)
    for rendition in renditions:
        await attachments_repo.delete_for_owner(
            session, owner_type=AttachmentOwner.RENDITION.value, owner_id=rendition.id
        )
        await status_history_repo.delete_entries(
            session, entity_type=HistoryEntity.RENDITION.value, entity_id=rendition.id
        )
        await renditions_repo.delete(session, rendition)
    await attachments_repo.delete_for_owner(
        session, owner_type=AttachmentOwner.SERVICE_REQUEST.value, owner_id=service_request.id
    )
    await status_history_repo.delete_entries(
        session, entity_type=HistoryEntity.SERVICE_REQUEST.value, entity_id=service_request.id
    )
    await service_requests_repo.delete(session, service_request)
    await projects_service.refresh_metrics(session, project_id=project_id)
    await session.commit()
    logger.info("Deleted service request %s", service_request_id)


async def change_status(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
    new_status: ServiceRequestStatus,
    notes: str | None = None,
    now: datetime | None = None,
) -> ServiceRequest:
    """
    Move a request along its lifecycle (admin or its assigned technician).

    Raises:
        HTTPException: 403 for anyone else, 400 for an illegal transition
    """
    service_request = await get_request_or_404(session, service_request_id)
    require(
        not actor.is_client,
        "Clients cannot change the status of service requests",
    )
    require(
        can_change_request_status(service_request, actor),
        "You do not have permission to change the status of this service request",
    )

    old_status = service_request.status
    changed = await lifecycle.transition(
        session,
        entity_type=HistoryEntity.SERVICE_REQUEST,
        entity=service_request,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=new_status.value,
            notes=notes or "",
        ),
        changed_at=now,
    )
    if not changed:
        return service_request

    service_request = await service_requests_repo.save(session, service_request)
    await projects_service.refresh_metrics(session, project_id=service_request.project_id)
    event = await notifications_service.record_event(
        session,
        event_type=EventType.REQUEST_STATUS_CHANGED,
        actor_id=actor.user_id,
        payload=_status_event_payload(service_request, old_status),
    )
    await session.commit()
    await notifications_service.dispatch(session, [event])
    return service_request


async def add_comment(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
    text: str,
) -> ServiceRequestComment:
    """Comment on a request; the requester and assignee other than the author are notified."""
    service_request, _ = await get_accessible_request(
        session,
        actor=actor,
        service_request_id=service_request_id,
        reason="You do not have permission to comment on this service request",
    )
    comment = await service_requests_repo.add_comment(
        session,
        ServiceRequestComment(
            service_request_id=service_request.id,
            text=text,
            created_by=actor.user_id,
        ),
    )
    event = await notifications_service.record_event(
        session,
        event_type=EventType.COMMENT_ADDED,
        actor_id=actor.user_id,
        payload={
            "service_request_id": service_request.id,
            "request_number": service_request.request_number,
            "requested_by": service_request.requested_by,
            "assigned_to": service_request.assigned_to,
        },
    )
    await session.commit()
    await notifications_service.dispatch(session, [event])
    return comment


async def add_attachments(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
    files: list[StoredFile],
) -> list[Attachment]:
    service_request, _ = await get_accessible_request(
        session,
        actor=actor,
        service_request_id=service_request_id,
        reason="You do not have permission to add files to this service request",
    )
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files were uploaded",
        )
    attachments = await attachments_repo.add_many(
        session,
        owner_type=AttachmentOwner.SERVICE_REQUEST.value,
        owner_id=service_request.id,
        files=files,
        uploaded_by=actor.user_id,
    )
    await session.commit()
    return attachments


async def get_history(
    session: AsyncSession,
    *,
    actor: ActorContext,
    service_request_id: UUID,
) -> list[StatusHistoryEntry]:
    service_request, _ = await get_accessible_request(
        session, actor=actor, service_request_id=service_request_id
    )
    return await status_history.list_history(
        session, entity_type=HistoryEntity.SERVICE_REQUEST, entity_id=service_request.id
    )
