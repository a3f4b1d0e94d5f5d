"""Notification fan-out through an outbox.

Business operations call ``record_event`` inside their own transaction. After
they commit, ``dispatch`` makes a best-effort attempt to deliver those events
straight away; whatever is left pending is picked up by ``deliver_pending``
(see ``scripts/deliver_notifications.py``). Delivery failures are logged and
recorded on the event, never raised to the caller.
"""

import logging
from typing import NamedTuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.actor import ActorContext
from db import utcnow
from models.notification import (
    EventStatus,
    EventType,
    Notification,
    NotificationEvent,
    NotificationType,
    RelatedModel,
)
from models.user import UserRole
from repos import notifications_repo, projects_repo, users_repo

logger = logging.getLogger(__name__)


class NotificationDraft(NamedTuple):
    recipient_id: UUID
    title: str
    message: str
    type: str = NotificationType.INFO.value


def _uuid(value) -> UUID | None:
    if value is None:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def _jsonable(payload: dict) -> dict:
    return {
        key: str(value) if isinstance(value, UUID) else value
        for key, value in payload.items()
    }


async def record_event(
    session: AsyncSession,
    *,
    event_type: EventType,
    actor_id: UUID | None,
    payload: dict,
) -> NotificationEvent:
    """
    Write an outbox event in the caller's transaction.

    Args:
        session: Database session
        event_type: Business event
        actor_id: User who caused it
        payload: Identifiers and labels needed to build the notifications

    Returns:
        The pending event
    """
    event = NotificationEvent(
        event_type=event_type.value,
        actor_id=actor_id,
        payload=_jsonable(payload),
        status=EventStatus.PENDING.value,
        attempts=0,
    )
    return await notifications_repo.add_event(session, event)


async def _project_audience(session: AsyncSession, project_id: UUID) -> list[UUID]:
    project = await projects_repo.get_by_id(session, project_id=project_id)
    if project is None:
        return []
    audience = list(await projects_repo.list_client_ids(session, project_id=project_id))
    if project.technician_id is not None:
        audience.append(project.technician_id)
    return audience


async def _drafts_for(session: AsyncSession, event: NotificationEvent) -> list[NotificationDraft]:
    """Recipients and texts for one event."""
    payload = event.payload or {}
    event_type = EventType(event.event_type)
    actor_id = event.actor_id

    if event_type is EventType.PROJECT_ASSIGNED:
        if payload.get("role") == UserRole.TECHNICIAN.value:
            title = "Asignación a nuevo proyecto"
            message = f"Has sido asignado como técnico al proyecto: {payload['project_name']}"
        else:
            title = "Acceso a nuevo proyecto"
            message = f"Se te ha dado acceso al proyecto: {payload['project_name']}"
        return [NotificationDraft(_uuid(payload["user_id"]), title, message)]

    if event_type is EventType.PROJECT_STATUS_CHANGED:
        message = (
            f"El proyecto {payload['project_name']} ha cambiado de estado: "
            f"{payload['old_status']} → {payload['new_status']}"
        )
        return [
            NotificationDraft(recipient, "Actualización de estado de proyecto", message)
            for recipient in await _project_audience(session, _uuid(payload["project_id"]))
        ]

    if event_type is EventType.MILESTONE_ADDED:
        message = (
            f'Se ha agregado un nuevo hito "{payload["milestone_title"]}" '
            f'al proyecto "{payload["project_name"]}"'
        )
        return [
            NotificationDraft(recipient, "Nuevo hito en proyecto", message)
            for recipient in await _project_audience(session, _uuid(payload["project_id"]))
            if recipient != actor_id
        ]

    if event_type is EventType.REQUEST_CREATED:
        message = f"Se ha creado una nueva solicitud: {payload['request_number']} - {payload['title']}"
        drafts = [
            NotificationDraft(admin_id, "Nueva solicitud de servicio", message)
            for admin_id in await users_repo.list_active_admin_ids(session)
        ]
        technician_id = _uuid(payload.get("technician_id"))
        if technician_id is not None:
            drafts.append(NotificationDraft(technician_id, "Nueva solicitud en tu proyecto", message))
        return drafts

    if event_type is EventType.REQUEST_ASSIGNED:
        return [
            NotificationDraft(
                _uuid(payload["assigned_to"]),
                "Nueva asignación de solicitud",
                f"Se le ha asignado la solicitud {payload['request_number']}: {payload['title']}",
            )
        ]

    if event_type is EventType.REQUEST_STATUS_CHANGED:
        change = f"{payload['old_status']} -> {payload['new_status']}"
        drafts = [
            NotificationDraft(
                _uuid(payload["requested_by"]),
                "Actualización de solicitud",
                f"Su solicitud {payload['request_number']} ha cambiado de estado: {change}",
            )
        ]
        assigned_to = _uuid(payload.get("assigned_to"))
        if assigned_to is not None and assigned_to != actor_id:
            drafts.append(
                NotificationDraft(
                    assigned_to,
                    "Actualización de solicitud asignada",
                    f"La solicitud {payload['request_number']} ha cambiado de estado: {change}",
                )
            )
        return drafts

    if event_type is EventType.COMMENT_ADDED:
        message = f"Se ha agregado un nuevo comentario a la solicitud {payload['request_number']}"
        candidates = [_uuid(payload.get("requested_by")), _uuid(payload.get("assigned_to"))]
        return [
            NotificationDraft(recipient, "Nuevo comentario en solicitud", message)
            for recipient in candidates
            if recipient is not None and recipient != actor_id
        ]

    if event_type is EventType.RENDITION_CREATED:
        message = (
            f"Se ha creado una nueva rendición: {payload['folio']} "
            f"para la solicitud {payload['request_number']}"
        )
        return [
            NotificationDraft(admin_id, "Nueva rendición para revisar", message)
            for admin_id in await users_repo.list_active_admin_ids(session)
        ]

    if event_type is EventType.RENDITION_APPROVED:
        return [
            NotificationDraft(
                _uuid(payload["technician_id"]),
                "Rendición aprobada",
                f"Su rendición {payload['folio']} ha sido aprobada",
                NotificationType.SUCCESS.value,
            )
        ]

    if event_type is EventType.RENDITION_REJECTED:
        return [
            NotificationDraft(
                _uuid(payload["technician_id"]),
                "Rendición rechazada",
                f"Su rendición {payload['folio']} ha sido rechazada: {payload['rejection_reason']}",
                NotificationType.ERROR.value,
            )
        ]

    return []


_RELATED = {
    "project_id": (RelatedModel.PROJECT, "/projects/{}"),
    "service_request_id": (RelatedModel.SERVICE_REQUEST, "/service-requests/{}"),
    "rendition_id": (RelatedModel.RENDITION, "/renditions/{}"),
}

# Most specific reference wins
_RELATED_PRIORITY = ("rendition_id", "service_request_id", "project_id")


def _related(payload: dict) -> tuple[str | None, UUID | None, str | None]:
    for key in _RELATED_PRIORITY:
        if payload.get(key):
            model, link = _RELATED[key]
            return model.value, _uuid(payload[key]), link.format(payload[key])
    return None, None, None


async def deliver_event(session: AsyncSession, event: NotificationEvent) -> bool:
    """
    Turn one event into notifications and mark it delivered.

    The notification inserts run in a savepoint; on failure that savepoint is
    rolled back, the attempt and error are recorded on the event and the
    error is logged. Nothing is raised. The caller commits.

    Returns:
        True if delivered
    """
    event_id = event.id
    attempts = (event.attempts or 0) + 1
    try:
        async with session.begin_nested():
            drafts = await _drafts_for(session, event)
            related_model, related_id, link = _related(event.payload or {})
            seen: set[UUID] = set()
            notifications = []
            for draft in drafts:
                if draft.recipient_id in seen:
                    continue
                seen.add(draft.recipient_id)
                notifications.append(
                    Notification(
                        recipient_id=draft.recipient_id,
                        title=draft.title,
                        message=draft.message,
                        type=draft.type,
                        related_model=related_model,
                        related_id=related_id,
                        link=link,
                        event_id=event_id,
                    )
                )
            if notifications:
                await notifications_repo.add_many(session, notifications)
    except Exception as e:
        logger.exception("Failed to deliver notification event %s (attempt %d)", event_id, attempts)
        event.attempts = attempts
        event.last_error = str(e)[:2000]
        if attempts >= config.settings.NOTIFICATION_MAX_ATTEMPTS:
            event.status = EventStatus.FAILED.value
        await session.flush()
        return False

    event.attempts = attempts
    event.status = EventStatus.DELIVERED.value
    event.delivered_at = utcnow()
    event.last_error = None
    await session.flush()
    return True


async def dispatch(session: AsyncSession, events: list[NotificationEvent]) -> None:
    """
    Best-effort delivery of events right after their business transaction committed.

    Events that fail stay pending for the delivery worker.
    """
    if not events:
        return
    try:
        for event in events:
            await deliver_event(session, event)
        await session.commit()
    except Exception:
        logger.exception("Immediate notification dispatch failed; events left for the worker")
        await session.rollback()


async def deliver_pending(session: AsyncSession, *, limit: int = 100) -> tuple[int, int]:
    """
    Retry every pending event that still has attempts left.

    Args:
        session: Database session
        limit: Maximum events handled in one pass

    Returns:
        Tuple of (delivered count, failed count)
    """
    events = await notifications_repo.list_pending_events(
        session,
        max_attempts=config.settings.NOTIFICATION_MAX_ATTEMPTS,
        limit=limit,
    )
    delivered = failed = 0
    for event in events:
        if await deliver_event(session, event):
            delivered += 1
        else:
            failed += 1
    await session.commit()
    if events:
        logger.info("Notification delivery pass: %d delivered, %d failed", delivered, failed)
    return delivered, failed


# Recipient-facing operations

async def list_notifications(
    session: AsyncSession,
    *,
    actor: ActorContext,
    unread_only: bool = False,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Notification], int]:
    return await notifications_repo.list_for_recipient(
        session,
        recipient_id=actor.user_id,
        unread_only=unread_only,
        offset=(page - 1) * limit,
        limit=limit,
    )


async def count_unread(session: AsyncSession, *, actor: ActorContext) -> int:
    return await notifications_repo.count_unread(session, recipient_id=actor.user_id)


async def _get_owned(session: AsyncSession, *, actor: ActorContext, notification_id: UUID) -> Notification:
    notification = await notifications_repo.get_for_recipient(
        session,
        notification_id=notification_id,
        recipient_id=actor.user_id,
    )
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return notification


async def mark_read(session: AsyncSession, *, actor: ActorContext, notification_id: UUID) -> Notification:
    """Mark one of the actor's notifications as read (idempotent)."""
    notification = await _get_owned(session, actor=actor, notification_id=notification_id)
    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
        notification = await notifications_repo.save(session, notification)
        await session.commit()
    return notification


async def mark_all_read(session: AsyncSession, *, actor: ActorContext) -> int:
    updated = await notifications_repo.mark_all_read(
        session,
        recipient_id=actor.user_id,
        read_at=utcnow(),
    )
    await session.commit()
    return updated


async def delete_notification(session: AsyncSession, *, actor: ActorContext, notification_id: UUID) -> None:
    notification = await _get_owned(session, actor=actor, notification_id=notification_id)
    await notifications_repo.delete(session, notification)
    await session.commit()
