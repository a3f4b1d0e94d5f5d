"""Repository for Notification and NotificationEvent database operations.

Notification reads and writes are always scoped to a recipient.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.notification import EventStatus, Notification, NotificationEvent


async def get_for_recipient(
    session: AsyncSession,
    *,
    notification_id: UUID,
    recipient_id: UUID,
) -> Notification | None:
    """
    Get a notification owned by a recipient.

    Args:
        session: Database session
        notification_id: Notification ID to fetch
        recipient_id: Owner of the notification

    Returns:
        Notification if found and owned by recipient, None otherwise
    """
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
        )
    )
    return result.scalar_one_or_none()


async def list_for_recipient(
    session: AsyncSession,
    *,
    recipient_id: UUID,
    unread_only: bool = False,
    offset: int = 0,
    limit: int | None = None,
) -> tuple[list[Notification], int]:
    """
    List a recipient's notifications, newest first.

    Returns:
        Tuple of (page of notifications, total matching count)
    """
    conditions = [Notification.recipient_id == recipient_id]
    if unread_only:
        conditions.append(Notification.read.is_(False))

    query = (
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    total = (
        await session.execute(select(func.count(Notification.id)).where(*conditions))
    ).scalar_one()
    return [notification for notification in result.scalars().all()], total


async def count_unread(session: AsyncSession, *, recipient_id: UUID) -> int:
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == recipient_id,
            Notification.read.is_(False),
        )
    )
    return result.scalar_one()


async def mark_all_read(session: AsyncSession, *, recipient_id: UUID, read_at: datetime) -> int:
    """
    Mark every unread notification of a recipient as read.

    Returns:
        Number of notifications updated
    """
    result = await session.execute(
        update(Notification)
        .where(
            Notification.recipient_id == recipient_id,
            Notification.read.is_(False),
        )
        .values(read=True, read_at=read_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def add_many(session: AsyncSession, notifications: list[Notification]) -> list[Notification]:
    """Insert a batch of notifications."""
    session.add_all(notifications)
    await session.flush()
    return notifications


async def save(session: AsyncSession, notification: Notification) -> Notification:
    await session.flush()
    await session.refresh(notification)
    return notification


async def delete(session: AsyncSession, notification: Notification) -> None:
    await session.delete(notification)
    await session.flush()


async def add_event(session: AsyncSession, event: NotificationEvent) -> NotificationEvent:
    """
    Insert an outbox event in the caller's transaction.

    Args:
        session: Database session
        event: NotificationEvent instance to persist

    Returns:
        Created event
    """
    session.add(event)
    await session.flush()
    return event


async def get_event(session: AsyncSession, *, event_id: UUID) -> NotificationEvent | None:
    result = await session.execute(
        select(NotificationEvent).where(NotificationEvent.id == event_id)
    )
    return result.scalar_one_or_none()


async def list_pending_events(
    session: AsyncSession,
    *,
    max_attempts: int,
    limit: int = 100,
) -> list[NotificationEvent]:
    """
    Pending events that have not exhausted their delivery attempts, oldest first.
    """
    result = await session.execute(
        select(NotificationEvent)
        .where(
            NotificationEvent.status == EventStatus.PENDING.value,
            NotificationEvent.attempts < max_attempts,
        )
        .order_by(NotificationEvent.created_at)
        .limit(limit)
    )
    return [event for event in result.scalars().all()]
