"""Repository for Attachment database operations."""

from uuid import UUID

from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.attachment import Attachment, StoredFile


async def list_for_owner(
    session: AsyncSession,
    *,
    owner_type: str,
    owner_id: UUID,
) -> list[Attachment]:
    """
    List attachments of one owner in upload order.

    Args:
        session: Database session
        owner_type: AttachmentOwner value
        owner_id: ID of the owning row

    Returns:
        Attachments ordered by position
    """
    result = await session.execute(
        select(Attachment)
        .where(Attachment.owner_type == owner_type, Attachment.owner_id == owner_id)
        .order_by(Attachment.position)
    )
    return [attachment for attachment in result.scalars().all()]


async def list_for_owners(
    session: AsyncSession,
    *,
    owner_type: str,
    owner_ids: list[UUID],
) -> dict[UUID, list[Attachment]]:
    """Map owner_id -> attachments for a batch of owners of the same type."""
    if not owner_ids:
        return {}
    result = await session.execute(
        select(Attachment)
        .where(Attachment.owner_type == owner_type, Attachment.owner_id.in_(owner_ids))
        .order_by(Attachment.position)
    )
    mapping: dict[UUID, list[Attachment]] = {owner_id: [] for owner_id in owner_ids}
    for attachment in result.scalars().all():
        mapping[attachment.owner_id].append(attachment)
    return mapping


async def get_by_id(
    session: AsyncSession,
    *,
    owner_type: str,
    owner_id: UUID,
    attachment_id: UUID,
) -> Attachment | None:
    """Get one attachment, scoped to its owner."""
    result = await session.execute(
        select(Attachment).where(
            Attachment.id == attachment_id,
            Attachment.owner_type == owner_type,
            Attachment.owner_id == owner_id,
        )
    )
    return result.scalar_one_or_none()


async def add_many(
    session: AsyncSession,
    *,
    owner_type: str,
    owner_id: UUID,
    files: list[StoredFile],
    uploaded_by: UUID | None,
    description: str | None = None,
) -> list[Attachment]:
    """
    Append attachments after the owner's existing ones.

    Args:
        session: Database session
        owner_type: AttachmentOwner value
        owner_id: ID of the owning row
        files: Stored file metadata returned by the file store
        uploaded_by: User who uploaded the files
        description: Optional caption (photos)

    Returns:
        The created attachments
    """
    count_result = await session.execute(
        select(func.count(Attachment.id)).where(
            Attachment.owner_type == owner_type,
            Attachment.owner_id == owner_id,
        )
    )
    next_position = count_result.scalar_one()

    created = []
    for offset, stored in enumerate(files):
        attachment = Attachment(
            owner_type=owner_type,
            owner_id=owner_id,
            position=next_position + offset,
            url=stored.url,
            name=stored.name,
            content_type=stored.content_type,
            description=description,
            uploaded_by=uploaded_by,
        )
        session.add(attachment)
        created.append(attachment)
    await session.flush()
    return created


async def delete(session: AsyncSession, attachment: Attachment) -> None:
    """Delete one attachment row."""
    await session.delete(attachment)
    await session.flush()


async def delete_for_owner(session: AsyncSession, *, owner_type: str, owner_id: UUID) -> None:
    """Delete every attachment of one owner."""
    await session.execute(
        sa_delete(Attachment).where(
            Attachment.owner_type == owner_type,
            Attachment.owner_id == owner_id,
        )
    )
