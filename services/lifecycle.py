"""Status transitions for projects, service requests and renditions.

Every status change goes through ``transition`` with an explicit
``TransitionRequest``; the transition tables below are the only legal moves.
Projects have no table: any status may follow any other.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import utcnow
from models.rendition import RenditionStatus
from models.service_request import ServiceRequest, ServiceRequestStatus
from models.status_history import HistoryEntity
from services import status_history

AUTO_COMPLETION_NOTES = "Actualizado automáticamente tras aprobación de rendición"

SERVICE_REQUEST_TRANSITIONS: dict[str, frozenset[str]] = {
    ServiceRequestStatus.REQUESTED.value: frozenset({
        ServiceRequestStatus.UNDER_REVIEW.value,
        ServiceRequestStatus.ACCEPTED.value,
        ServiceRequestStatus.CANCELLED.value,
    }),
    ServiceRequestStatus.UNDER_REVIEW.value: frozenset({
        ServiceRequestStatus.ACCEPTED.value,
        ServiceRequestStatus.CANCELLED.value,
    }),
    ServiceRequestStatus.ACCEPTED.value: frozenset({
        ServiceRequestStatus.COMPLETED.value,
        ServiceRequestStatus.CANCELLED.value,
    }),
    ServiceRequestStatus.COMPLETED.value: frozenset(),
    ServiceRequestStatus.CANCELLED.value: frozenset(),
}

RENDITION_TRANSITIONS: dict[str, frozenset[str]] = {
    RenditionStatus.PENDING.value: frozenset({RenditionStatus.SUBMITTED.value}),
    RenditionStatus.SUBMITTED.value: frozenset({RenditionStatus.UNDER_REVIEW.value}),
    RenditionStatus.UNDER_REVIEW.value: frozenset({
        RenditionStatus.APPROVED.value,
        RenditionStatus.REJECTED.value,
    }),
    RenditionStatus.APPROVED.value: frozenset(),
    RenditionStatus.REJECTED.value: frozenset(),
}

_TABLES = {
    HistoryEntity.SERVICE_REQUEST: SERVICE_REQUEST_TRANSITIONS,
    HistoryEntity.RENDITION: RENDITION_TRANSITIONS,
}


@dataclass(frozen=True)
class TransitionRequest:
    """Who asks for which status, and why."""

    actor_id: UUID | None
    new_status: str
    notes: str = ""


def _value(status_value) -> str:
    return str(getattr(status_value, "value", status_value))


def is_allowed(entity_type: HistoryEntity, current: str, new: str) -> bool:
    """Whether ``current -> new`` is a legal move for this entity kind."""
    table = _TABLES.get(entity_type)
    if table is None:
        return True
    return _value(new) in table.get(_value(current), frozenset())


async def transition(
    session: AsyncSession,
    *,
    entity_type: HistoryEntity,
    entity,
    request: TransitionRequest,
    changed_at: datetime | None = None,
    force: bool = False,
) -> bool:
    """
    Move an entity to a new status and record it in its history.

    Args:
        session: Database session
        entity_type: Kind of entity
        entity: ORM instance with ``id`` and ``status``
        request: Requested transition
        changed_at: When the change happened (defaults to now)
        force: Skip the transition table

    Returns:
        True if the status changed, False for a same-status no-op

    Raises:
        HTTPException: 400 if the move is not in the transition table
    """
    current = _value(entity.status)
    new = _value(request.new_status)
    if current == new:
        return False
    if not force and not is_allowed(entity_type, current, new):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status transition: {current} -> {new}",
        )

    changed_at = changed_at or utcnow()
    entity.status = new
    if isinstance(entity, ServiceRequest) and new == ServiceRequestStatus.COMPLETED.value:
        entity.completion_date = changed_at

    await status_history.append_history(
        session,
        entity_type=entity_type,
        entity_id=entity.id,
        status=new,
        changed_by=request.actor_id,
        notes=request.notes,
        changed_at=changed_at,
    )
    return True


async def complete_after_rendition_approval(
    session: AsyncSession,
    *,
    service_request: ServiceRequest,
    reviewer_id: UUID,
    changed_at: datetime | None = None,
) -> bool:
    """
    Force a service request to Completed once one of its renditions is approved.

    Returns:
        True if the request changed, False if it was already Completed
    """
    return await transition(
        session,
        entity_type=HistoryEntity.SERVICE_REQUEST,
        entity=service_request,
        request=TransitionRequest(
            actor_id=reviewer_id,
            new_status=ServiceRequestStatus.COMPLETED.value,
            notes=AUTO_COMPLETION_NOTES,
        ),
        changed_at=changed_at,
        force=True,
    )
