"""Append-only status history shared by projects, service requests and renditions."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status as http_status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db import utcnow
from models.status_history import HistoryEntity, StatusHistoryEntry
from repos import status_history_repo
from services.identifiers import is_unique_violation

logger = logging.getLogger(__name__)

HISTORY_MAX_ATTEMPTS = 5

CREATION_NOTES = {
    HistoryEntity.PROJECT: "Proyecto creado",
    HistoryEntity.SERVICE_REQUEST: "Solicitud creada",
    HistoryEntity.RENDITION: "Rendición creada",
}


def build_entry(
    *,
    entity_type: HistoryEntity,
    entity_id: UUID,
    position: int,
    status: str,
    changed_by: UUID | None,
    notes: str = "",
    changed_at: datetime | None = None,
) -> StatusHistoryEntry:
    """Build a history row without touching the session."""
    return StatusHistoryEntry(
        entity_type=entity_type.value,
        entity_id=entity_id,
        position=position,
        status=str(getattr(status, "value", status)),
        changed_by=changed_by,
        changed_at=changed_at or utcnow(),
        notes=notes or "",
    )


async def append_history(
    session: AsyncSession,
    *,
    entity_type: HistoryEntity,
    entity_id: UUID,
    status: str,
    changed_by: UUID | None,
    notes: str = "",
    changed_at: datetime | None = None,
) -> StatusHistoryEntry:
    """
    Append one entry after the entity's existing history.

    Args:
        session: Database session
        entity_type: Kind of entity
        entity_id: Entity ID
        status: Status the entity now holds
        changed_by: User responsible for the change
        notes: Free-text reason
        changed_at: When the change happened (defaults to now)

    Returns:
        The inserted entry

    Raises:
        HTTPException: 409 if concurrent writers kept taking the next position
    """
    changed_at = changed_at or utcnow()
    for attempt in range(1, HISTORY_MAX_ATTEMPTS + 1):
        position = await status_history_repo.count_entries(
            session,
            entity_type=entity_type.value,
            entity_id=entity_id,
        )
        entry = build_entry(
            entity_type=entity_type,
            entity_id=entity_id,
            position=position,
            status=status,
            changed_by=changed_by,
            notes=notes,
            changed_at=changed_at,
        )
        try:
            async with session.begin_nested():
                return await status_history_repo.insert(session, entry)
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            logger.warning(
                "History position %d of %s %s already taken (attempt %d/%d)",
                position,
                entity_type.value,
                entity_id,
                attempt,
                HISTORY_MAX_ATTEMPTS,
            )

    raise HTTPException(
        status_code=http_status.HTTP_409_CONFLICT,
        detail="The status was changed concurrently, please retry",
    )


async def seed_history(
    session: AsyncSession,
    *,
    entity_type: HistoryEntity,
    entity_id: UUID,
    status: str,
    created_by: UUID | None,
    changed_at: datetime | None = None,
) -> StatusHistoryEntry:
    """Record the creation entry of a freshly inserted entity."""
    return await append_history(
        session,
        entity_type=entity_type,
        entity_id=entity_id,
        status=status,
        changed_by=created_by,
        notes=CREATION_NOTES[entity_type],
        changed_at=changed_at,
    )


async def list_history(
    session: AsyncSession,
    *,
    entity_type: HistoryEntity,
    entity_id: UUID,
) -> list[StatusHistoryEntry]:
    return await status_history_repo.list_entries(
        session,
        entity_type=entity_type.value,
        entity_id=entity_id,
    )
