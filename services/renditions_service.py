"""Service layer for Rendition business logic."""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from db import utcnow
from models.attachment import Attachment, AttachmentOwner, AttachmentResponse, StoredFile
from models.notification import EventType, NotificationEvent
from models.rendition import (
    ExpenseCreate,
    ExpenseResponse,
    Rendition,
    RenditionCreate,
    RenditionDetailResponse,
    RenditionExpense,
    RenditionReject,
    RenditionResponse,
    RenditionStatus,
    RenditionUpdate,
)
from models.status_history import HistoryEntity, StatusHistoryEntry, StatusHistoryEntryResponse
from repos import attachments_repo, renditions_repo, status_history_repo
from services import lifecycle, notifications_service, projects_service, status_history
from services.access_policy import (
    can_access_project,
    can_create_rendition,
    can_delete_rendition,
    can_modify_rendition,
    can_read_rendition,
    rendition_list_scope,
    require,
    require_admin,
)
from services.identifiers import IdentifierKind, insert_with_identifier
from services.service_requests_service import get_request_or_404

logger = logging.getLogger(__name__)

SUBMIT_NOTES = "Rendición enviada"
REVIEW_NOTES = "Rendición en revisión"


async def get_rendition_or_404(session: AsyncSession, rendition_id: UUID) -> Rendition:
    rendition = await renditions_repo.get_by_id(session, rendition_id=rendition_id)
    if not rendition:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Rendition not found",
        )
    return rendition


def _work_fields(work_details) -> dict:
    if work_details is None:
        return {}
    data = work_details.model_dump(exclude_unset=True)
    if "materials_used" in data:
        data["materials_used"] = data["materials_used"] or []
    return data


async def _submit_if_pending(
    session: AsyncSession,
    rendition: Rendition,
    actor: ActorContext,
    now: datetime | None = None,
) -> None:
    """First change by the author moves a Pending rendition to Submitted."""
    if rendition.status != RenditionStatus.PENDING.value or rendition.technician_id != actor.user_id:
        return
    await lifecycle.transition(
        session,
        entity_type=HistoryEntity.RENDITION,
        entity=rendition,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=RenditionStatus.SUBMITTED.value,
            notes=SUBMIT_NOTES,
        ),
        changed_at=now,
    )


async def _begin_review(
    session: AsyncSession,
    rendition: Rendition,
    actor: ActorContext,
    now: datetime | None = None,
) -> bool:
    """Record Submitted -> UnderReview for a reviewer deciding without an explicit review step."""
    if rendition.status != RenditionStatus.SUBMITTED.value:
        return False
    return await lifecycle.transition(
        session,
        entity_type=HistoryEntity.RENDITION,
        entity=rendition,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=RenditionStatus.UNDER_REVIEW.value,
            notes=REVIEW_NOTES,
        ),
        changed_at=now,
    )


async def create_rendition(
    session: AsyncSession,
    *,
    actor: ActorContext,
    payload: RenditionCreate,
    now: datetime | None = None,
) -> Rendition:
    """
    File a rendition against a service request (technicians only).

    Business rules:
    - an assigned request only accepts renditions from its assignee
    - folio is generated as RND-YYMMDD-NNN (retried on collision)
    - the rendition row references its request, so creation is one write
    - active admins are notified

    Raises:
        HTTPException: 404 if the request is missing, 403 if not allowed, 409 if no folio could be allocated
    """
    service_request = await get_request_or_404(session, payload.service_request_id)
    project = await projects_service.get_project_or_404(session, service_request.project_id)
    project_access = await can_access_project(session, project=project, actor=actor)
    require(
        can_create_rendition(service_request, actor, project_access=project_access),
        "You do not have permission to create renditions for this service request",
    )

    now = now or utcnow()
    location = payload.location
    longitude, latitude = (location.coordinates if location and location.coordinates else (None, None))

    async def _insert(folio: str) -> Rendition:
        rendition = Rendition(
            folio=folio,
            service_request_id=service_request.id,
            project_id=project.id,
            description=payload.description,
            technician_id=actor.user_id,
            status=RenditionStatus.PENDING.value,
            address=location.address if location else None,
            longitude=longitude,
            latitude=latitude,
            offline=payload.offline,
            synced_at=now if payload.offline else None,
            created_at=now,
            **_work_fields(payload.work_details),
        )
        rendition = await renditions_repo.create(session, rendition)
        await status_history.seed_history(
            session,
            entity_type=HistoryEntity.RENDITION,
            entity_id=rendition.id,
            status=rendition.status,
            created_by=actor.user_id,
            changed_at=now,
        )
        return rendition

    rendition = await insert_with_identifier(
        session,
        kind=IdentifierKind.RENDITION,
        timestamp=now,
        insert=_insert,
    )
    event = await notifications_service.record_event(
        session,
        event_type=EventType.RENDITION_CREATED,
        actor_id=actor.user_id,
        payload={
            "rendition_id": rendition.id,
            "folio": rendition.folio,
            "request_number": service_request.request_number,
        },
    )
    await session.commit()
    logger.info("Created rendition %s for %s", rendition.folio, service_request.request_number)
    await notifications_service.dispatch(session, [event])
    return rendition


async def list_renditions(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID | None = None,
    service_request_id: UUID | None = None,
    status_filter: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Rendition], int]:
    """Technicians list their own renditions, admins all; clients none."""
    require(not actor.is_client, "Clients cannot view renditions")
    return await renditions_repo.list_renditions(
        session,
        project_id=project_id,
        service_request_id=service_request_id,
        status=status_filter,
        search=search,
        offset=(page - 1) * limit,
        limit=limit,
        **rendition_list_scope(actor),
    )


async def _get_readable(session: AsyncSession, actor: ActorContext, rendition_id: UUID) -> Rendition:
    rendition = await get_rendition_or_404(session, rendition_id)
    require(can_read_rendition(rendition, actor), "You do not have permission to view this rendition")
    return rendition


async def build_detail(session: AsyncSession, rendition: Rendition) -> RenditionDetailResponse:
    expenses = await renditions_repo.list_expenses(session, rendition_id=rendition.id)
    attachments = await attachments_repo.list_for_owner(
        session, owner_type=AttachmentOwner.RENDITION.value, owner_id=rendition.id
    )
    history = await status_history.list_history(
        session, entity_type=HistoryEntity.RENDITION, entity_id=rendition.id
    )
    base = RenditionResponse.model_validate(rendition)
    return RenditionDetailResponse(
        **base.model_dump(),
        expenses=[ExpenseResponse.model_validate(expense) for expense in expenses],
        attachments=[AttachmentResponse.model_validate(attachment) for attachment in attachments],
        history=[StatusHistoryEntryResponse.model_validate(entry) for entry in history],
        total_amount=sum((Decimal(expense.amount) for expense in expenses), Decimal("0")),
    )


async def get_rendition(session: AsyncSession, *, actor: ActorContext, rendition_id: UUID) -> RenditionDetailResponse:
    rendition = await _get_readable(session, actor, rendition_id)
    return await build_detail(session, rendition)


async def update_rendition(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
    payload: RenditionUpdate,
) -> Rendition:
    """
    Edit description and work details (author before review, or admin).

    Raises:
        HTTPException: 403 once the rendition has been approved or rejected
    """
    rendition = await get_rendition_or_404(session, rendition_id)
    require(can_modify_rendition(rendition, actor), "You do not have permission to modify this rendition")

    if payload.description is not None:
        rendition.description = payload.description
    for field, value in _work_fields(payload.work_details).items():
        setattr(rendition, field, value)
    await _submit_if_pending(session, rendition, actor)

    rendition = await renditions_repo.save(session, rendition)
    await session.commit()
    return rendition


async def delete_rendition(session: AsyncSession, *, actor: ActorContext, rendition_id: UUID) -> None:
    """
    Delete a rendition with its expenses, files and history.

    Raises:
        HTTPException: 403 for approved renditions or other users' renditions
    """
    rendition = await get_rendition_or_404(session, rendition_id)
    require(can_delete_rendition(rendition, actor), "You do not have permission to delete this rendition")

    await attachments_repo.delete_for_owner(
        session, owner_type=AttachmentOwner.RENDITION.value, owner_id=rendition.id
    )
    await status_history_repo.delete_entries(
        session, entity_type=HistoryEntity.RENDITION.value, entity_id=rendition.id
    )
    await renditions_repo.delete(session, rendition)
    await session.commit()
    logger.info("Deleted rendition %s", rendition_id)


async def add_expense(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
    payload: ExpenseCreate,
    payment_proof: StoredFile | None = None,
) -> RenditionExpense:
    """Append an expense, with an optional payment proof file."""
    rendition = await get_rendition_or_404(session, rendition_id)
    require(
        can_modify_rendition(rendition, actor),
        "You do not have permission to add expenses to this rendition",
    )

    expense = RenditionExpense(
        rendition_id=rendition.id,
        category=payload.category,
        amount=payload.amount,
        description=payload.description,
        payment_proof_url=payment_proof.url if payment_proof else None,
        payment_proof_name=payment_proof.name if payment_proof else None,
        payment_proof_type=payment_proof.content_type if payment_proof else None,
    )
    expense = await renditions_repo.add_expense(session, expense)
    await _submit_if_pending(session, rendition, actor)
    await session.commit()
    return expense


async def add_attachments(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
    files: list[StoredFile],
) -> list[Attachment]:
    rendition = await get_rendition_or_404(session, rendition_id)
    require(
        can_modify_rendition(rendition, actor),
        "You do not have permission to add files to this rendition",
    )
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files were uploaded",
        )
    attachments = await attachments_repo.add_many(
        session,
        owner_type=AttachmentOwner.RENDITION.value,
        owner_id=rendition.id,
        files=files,
        uploaded_by=actor.user_id,
    )
    await _submit_if_pending(session, rendition, actor)
    await session.commit()
    return attachments


async def start_review(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
    now: datetime | None = None,
) -> Rendition:
    """
    Take a submitted rendition under review (admin only).

    Raises:
        HTTPException: 403 if not admin, 404 if missing, 400 unless the rendition is Submitted
    """
    require_admin(actor, "Only administrators can review renditions")
    rendition = await get_rendition_or_404(session, rendition_id)

    changed = await lifecycle.transition(
        session,
        entity_type=HistoryEntity.RENDITION,
        entity=rendition,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=RenditionStatus.UNDER_REVIEW.value,
            notes=REVIEW_NOTES,
        ),
        changed_at=now,
    )
    if changed:
        rendition = await renditions_repo.save(session, rendition)
        await session.commit()
        logger.info("Rendition %s under review by %s", rendition.folio, actor.user_id)
    return rendition


async def approve_rendition(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
    review_comments: str | None = None,
    now: datetime | None = None,
) -> Rendition:
    """
    Approve a rendition (admin only) and complete its service request.

    A Submitted rendition is first recorded as UnderReview. The request is
    forced to Completed with the reviewer as the author of the history entry,
    unless it already is Completed. Both changes commit together.

    Raises:
        HTTPException: 403 if not admin, 400 if the rendition cannot be approved from its status
    """
    require_admin(actor, "Only administrators can approve renditions")
    rendition = await get_rendition_or_404(session, rendition_id)
    service_request = await get_request_or_404(session, rendition.service_request_id)
    now = now or utcnow()

    await _begin_review(session, rendition, actor, now)
    changed = await lifecycle.transition(
        session,
        entity_type=HistoryEntity.RENDITION,
        entity=rendition,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=RenditionStatus.APPROVED.value,
            notes=review_comments or "",
        ),
        changed_at=now,
    )
    if not changed:
        return rendition
    rendition.reviewed_by = actor.user_id
    rendition.review_date = now
    rendition.review_comments = review_comments
    rendition = await renditions_repo.save(session, rendition)

    events: list[NotificationEvent] = [
        await notifications_service.record_event(
            session,
            event_type=EventType.RENDITION_APPROVED,
            actor_id=actor.user_id,
            payload={
                "rendition_id": rendition.id,
                "folio": rendition.folio,
                "technician_id": rendition.technician_id,
            },
        )
    ]

    old_status = service_request.status
    if await lifecycle.complete_after_rendition_approval(
        session,
        service_request=service_request,
        reviewer_id=actor.user_id,
        changed_at=now,
    ):
        await projects_service.refresh_metrics(session, project_id=service_request.project_id)
        events.append(
            await notifications_service.record_event(
                session,
                event_type=EventType.REQUEST_STATUS_CHANGED,
                actor_id=actor.user_id,
                payload={
                    "service_request_id": service_request.id,
                    "request_number": service_request.request_number,
                    "old_status": old_status,
                    "new_status": service_request.status,
                    "requested_by": service_request.requested_by,
                    "assigned_to": service_request.assigned_to,
                },
            )
        )

    await session.commit()
    logger.info("Rendition %s approved by %s", rendition.folio, actor.user_id)
    await notifications_service.dispatch(session, events)
    return rendition


async def reject_rendition(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
    payload: RenditionReject,
    now: datetime | None = None,
) -> Rendition:
    """
    Reject a rendition (admin only) with a reason and comments.

    Raises:
        HTTPException: 403 if not admin, 400 if the rendition cannot be rejected from its status
    """
    require_admin(actor, "Only administrators can reject renditions")
    rendition = await get_rendition_or_404(session, rendition_id)
    now = now or utcnow()

    await _begin_review(session, rendition, actor, now)
    changed = await lifecycle.transition(
        session,
        entity_type=HistoryEntity.RENDITION,
        entity=rendition,
        request=lifecycle.TransitionRequest(
            actor_id=actor.user_id,
            new_status=RenditionStatus.REJECTED.value,
            notes=payload.rejection_comments,
        ),
        changed_at=now,
    )
    if not changed:
        return rendition
    rendition.reviewed_by = actor.user_id
    rendition.review_date = now
    rendition.rejection_reason = payload.rejection_reason.value
    rendition.rejection_comments = payload.rejection_comments
    rendition = await renditions_repo.save(session, rendition)

    event = await notifications_service.record_event(
        session,
        event_type=EventType.RENDITION_REJECTED,
        actor_id=actor.user_id,
        payload={
            "rendition_id": rendition.id,
            "folio": rendition.folio,
            "technician_id": rendition.technician_id,
            "rejection_reason": rendition.rejection_reason,
        },
    )
    await session.commit()
    await notifications_service.dispatch(session, [event])
    return rendition


async def get_history(
    session: AsyncSession,
    *,
    actor: ActorContext,
    rendition_id: UUID,
) -> list[StatusHistoryEntry]:
    rendition = await _get_readable(session, actor, rendition_id)
    return await status_history.list_history(
        session, entity_type=HistoryEntity.RENDITION, entity_id=rendition.id
    )
