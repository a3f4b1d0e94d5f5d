"""Repository for ServiceRequest database operations."""

from uuid import UUID

from sqlalchemy import delete as sa_delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.rendition import Rendition
from models.service_request import ServiceRequest, ServiceRequestComment


async def get_by_id(
    session: AsyncSession,
    *,
    service_request_id: UUID,
) -> ServiceRequest | None:
    """
    Get a service request by ID.

    Args:
        session: Database session
        service_request_id: Service request ID to fetch

    Returns:
        ServiceRequest if found, None otherwise
    """
    result = await session.execute(
        select(ServiceRequest).where(ServiceRequest.id == service_request_id)
    )
    return result.scalar_one_or_none()


async def get_latest_request_number(session: AsyncSession) -> str | None:
    """
    Request number of the most recently created service request, across all months.

    Returns:
        The request number, or None when no request exists yet
    """
    result = await session.execute(
        select(ServiceRequest.request_number)
        .order_by(ServiceRequest.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _filtered(
    query,
    *,
    requested_by: UUID | None,
    assigned_to: UUID | None,
    project_id: UUID | None,
    status: str | None,
    priority: str | None,
    search: str | None,
):
    if requested_by is not None:
        query = query.where(ServiceRequest.requested_by == requested_by)
    if assigned_to is not None:
        query = query.where(ServiceRequest.assigned_to == assigned_to)
    if project_id is not None:
        query = query.where(ServiceRequest.project_id == project_id)
    if status:
        query = query.where(ServiceRequest.status == status)
    if priority:
        query = query.where(ServiceRequest.priority == priority)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(ServiceRequest.title).like(pattern),
                func.lower(ServiceRequest.description).like(pattern),
                func.lower(ServiceRequest.request_number).like(pattern),
            )
        )
    return query


async def list_requests(
    session: AsyncSession,
    *,
    requested_by: UUID | None = None,
    assigned_to: UUID | None = None,
    project_id: UUID | None = None,
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> tuple[list[ServiceRequest], int]:
    """
    List service requests with optional filters, newest first.

    Returns:
        Tuple of (page of service requests, total matching count)
    """
    filters = dict(
        requested_by=requested_by,
        assigned_to=assigned_to,
        project_id=project_id,
        status=status,
        priority=priority,
        search=search,
    )
    query = (
        _filtered(select(ServiceRequest), **filters)
        .order_by(ServiceRequest.created_at.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    count_query = _filtered(select(func.count(ServiceRequest.id)), **filters)

    result = await session.execute(query)
    total = (await session.execute(count_query)).scalar_one()
    return [request for request in result.scalars().all()], total


async def count_by_status_for_project(session: AsyncSession, *, project_id: UUID) -> dict[str, int]:
    """Number of service requests per status within one project."""
    result = await session.execute(
        select(ServiceRequest.status, func.count(ServiceRequest.id))
        .where(ServiceRequest.project_id == project_id)
        .group_by(ServiceRequest.status)
    )
    return {status: count for status, count in result.all()}


async def create(session: AsyncSession, service_request: ServiceRequest) -> ServiceRequest:
    """
    Create a new service request.

    Args:
        session: Database session
        service_request: ServiceRequest instance to create

    Returns:
        Created service request

    Raises:
        IntegrityError: If the request number is already taken
    """
    session.add(service_request)
    await session.flush()
    await session.refresh(service_request)
    return service_request


async def save(session: AsyncSession, service_request: ServiceRequest) -> ServiceRequest:
    """Flush pending changes on an existing service request."""
    await session.flush()
    await session.refresh(service_request)
    return service_request


async def delete(session: AsyncSession, service_request: ServiceRequest) -> None:
    """Delete a service request together with its comments."""
    await session.execute(
        sa_delete(ServiceRequestComment).where(
            ServiceRequestComment.service_request_id == service_request.id
        )
    )
    await session.delete(service_request)
    await session.flush()


async def list_comments(session: AsyncSession, *, service_request_id: UUID) -> list[ServiceRequestComment]:
    """Comments of a service request, oldest first."""
    result = await session.execute(
        select(ServiceRequestComment)
        .where(ServiceRequestComment.service_request_id == service_request_id)
        .order_by(ServiceRequestComment.created_at)
    )
    return [comment for comment in result.scalars().all()]


async def add_comment(session: AsyncSession, comment: ServiceRequestComment) -> ServiceRequestComment:
    """Insert a comment."""
    session.add(comment)
    await session.flush()
    await session.refresh(comment)
    return comment


async def list_rendition_ids(session: AsyncSession, *, service_request_id: UUID) -> list[UUID]:
    """IDs of the renditions filed against a service request."""
    result = await session.execute(
        select(Rendition.id)
        .where(Rendition.service_request_id == service_request_id)
        .order_by(Rendition.created_at)
    )
    return [row for row in result.scalars().all()]
