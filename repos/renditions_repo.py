"""Repository for Rendition database operations."""

from uuid import UUID

from sqlalchemy import delete as sa_delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.rendition import Rendition, RenditionExpense


async def get_by_id(session: AsyncSession, *, rendition_id: UUID) -> Rendition | None:
    """
    Get a rendition by ID.

    Args:
        session: Database session
        rendition_id: Rendition ID to fetch

    Returns:
        Rendition if found, None otherwise
    """
    result = await session.execute(select(Rendition).where(Rendition.id == rendition_id))
    return result.scalar_one_or_none()


async def get_latest_folio(session: AsyncSession) -> str | None:
    """Folio of the most recently created rendition, across all days."""
    result = await session.execute(
        select(Rendition.folio).order_by(Rendition.created_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()


def _filtered(
    query,
    *,
    technician_id: UUID | None,
    project_id: UUID | None,
    service_request_id: UUID | None,
    status: str | None,
    search: str | None,
):
    if technician_id is not None:
        query = query.where(Rendition.technician_id == technician_id)
    if project_id is not None:
        query = query.where(Rendition.project_id == project_id)
    if service_request_id is not None:
        query = query.where(Rendition.service_request_id == service_request_id)
    if status:
        query = query.where(Rendition.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Rendition.folio).like(pattern),
                func.lower(Rendition.description).like(pattern),
            )
        )
    return query


async def list_renditions(
    session: AsyncSession,
    *,
    technician_id: UUID | None = None,
    project_id: UUID | None = None,
    service_request_id: UUID | None = None,
    status: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> tuple[list[Rendition], int]:
    """
    List renditions with optional filters, newest first.

    Returns:
        Tuple of (page of renditions, total matching count)
    """
    filters = dict(
        technician_id=technician_id,
        project_id=project_id,
        service_request_id=service_request_id,
        status=status,
        search=search,
    )
    query = _filtered(select(Rendition), **filters).order_by(Rendition.created_at.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    count_query = _filtered(select(func.count(Rendition.id)), **filters)

    result = await session.execute(query)
    total = (await session.execute(count_query)).scalar_one()
    return [rendition for rendition in result.scalars().all()], total


async def create(session: AsyncSession, rendition: Rendition) -> Rendition:
    """
    Create a new rendition.

    Raises:
        IntegrityError: If the folio is already taken
    """
    session.add(rendition)
    await session.flush()
    await session.refresh(rendition)
    return rendition


async def save(session: AsyncSession, rendition: Rendition) -> Rendition:
    await session.flush()
    await session.refresh(rendition)
    return rendition


async def delete(session: AsyncSession, rendition: Rendition) -> None:
    """Delete a rendition together with its expenses."""
    await session.execute(
        sa_delete(RenditionExpense).where(RenditionExpense.rendition_id == rendition.id)
    )
    await session.delete(rendition)
    await session.flush()


async def list_expenses(session: AsyncSession, *, rendition_id: UUID) -> list[RenditionExpense]:
    """Expenses of a rendition in the order they were added."""
    result = await session.execute(
        select(RenditionExpense)
        .where(RenditionExpense.rendition_id == rendition_id)
        .order_by(RenditionExpense.position)
    )
    return [expense for expense in result.scalars().all()]


async def add_expense(session: AsyncSession, expense: RenditionExpense) -> RenditionExpense:
    """
    Append an expense after the rendition's existing ones.

    Args:
        session: Database session
        expense: RenditionExpense instance (position is assigned here)

    Returns:
        Created expense
    """
    result = await session.execute(
        select(func.count(RenditionExpense.id)).where(
            RenditionExpense.rendition_id == expense.rendition_id
        )
    )
    expense.position = result.scalar_one()
    session.add(expense)
    await session.flush()
    await session.refresh(expense)
    return expense
