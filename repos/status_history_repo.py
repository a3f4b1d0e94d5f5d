"""Repository for StatusHistoryEntry database operations.

Entries are never updated; they are only removed together with their entity.
"""

from uuid import UUID

from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.status_history import StatusHistoryEntry


async def count_entries(session: AsyncSession, *, entity_type: str, entity_id: UUID) -> int:
    """Number of history entries recorded for an entity."""
    result = await session.execute(
        select(func.count(StatusHistoryEntry.id)).where(
            StatusHistoryEntry.entity_type == entity_type,
            StatusHistoryEntry.entity_id == entity_id,
        )
    )
    return result.scalar_one()


async def list_entries(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: UUID,
) -> list[StatusHistoryEntry]:
    """
    List the history of an entity, oldest first.

    Args:
        session: Database session
        entity_type: Entity type (e.g., 'service_requests')
        entity_id: Entity ID

    Returns:
        History entries ordered by position ASC
    """
    result = await session.execute(
        select(StatusHistoryEntry)
        .where(
            StatusHistoryEntry.entity_type == entity_type,
            StatusHistoryEntry.entity_id == entity_id,
        )
        .order_by(StatusHistoryEntry.position)
    )
    return [entry for entry in result.scalars().all()]


async def insert(session: AsyncSession, entry: StatusHistoryEntry) -> StatusHistoryEntry:
    """Insert one history entry."""
    session.add(entry)
    await session.flush()
    return entry


async def delete_entries(session: AsyncSession, *, entity_type: str, entity_id: UUID) -> None:
    """Drop the history of an entity that is itself being deleted."""
    await session.execute(
        sa_delete(StatusHistoryEntry).where(
            StatusHistoryEntry.entity_type == entity_type,
            StatusHistoryEntry.entity_id == entity_id,
        )
    )
