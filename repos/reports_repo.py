"""Aggregate queries behind the admin reports.

Ranges are half-open: ``start <= column < end``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.project import Project, ProjectStatus
from models.rendition import Rendition, RenditionExpense, RenditionStatus
from models.service_request import ServiceRequest, ServiceRequestStatus
from models.status_history import HistoryEntity, StatusHistoryEntry
from models.user import User, UserRole

REQUEST_GROUPINGS = {
    "status": ServiceRequest.status,
    "priority": ServiceRequest.priority,
    "request_type": ServiceRequest.request_type,
}


def _between(column, start: datetime, end: datetime):
    return and_(column >= start, column < end)


async def count_projects_by_status(session: AsyncSession, *, start: datetime, end: datetime) -> list[tuple[str, int]]:
    """Projects created in the range, per status, ordered by status."""
    result = await session.execute(
        select(Project.status, func.count(Project.id))
        .where(_between(Project.created_at, start, end))
        .group_by(Project.status)
        .order_by(Project.status)
    )
    return [(status, count) for status, count in result.all()]


async def count_requests_by_project(
    session: AsyncSession, *, start: datetime, end: datetime
) -> list[tuple[UUID, str, int]]:
    """
    Service requests created in the range, per project.

    Returns:
        List of (project_id, project name, request count), highest count first
    """
    request_count = func.count(ServiceRequest.id).label("request_count")
    result = await session.execute(
        select(Project.id, Project.name, request_count)
        .join(ServiceRequest, ServiceRequest.project_id == Project.id)
        .where(_between(ServiceRequest.created_at, start, end))
        .group_by(Project.id, Project.name)
        .order_by(request_count.desc(), Project.name)
    )
    return [(project_id, name, count) for project_id, name, count in result.all()]


async def count_requests_grouped(
    session: AsyncSession, *, field: str, start: datetime, end: datetime
) -> list[tuple[str, int]]:
    """Service requests created in the range, grouped by ``status``, ``priority`` or ``request_type``."""
    column = REQUEST_GROUPINGS[field]
    result = await session.execute(
        select(column, func.count(ServiceRequest.id))
        .where(_between(ServiceRequest.created_at, start, end))
        .group_by(column)
        .order_by(column)
    )
    return [(key, count) for key, count in result.all()]


async def count_requests_by_month(session: AsyncSession, *, since: datetime) -> list[tuple[int, int, int]]:
    """
    Service requests created since ``since``, per calendar month.

    Returns:
        List of (year, month, count), oldest month first
    """
    year = extract("year", ServiceRequest.created_at).label("year")
    month = extract("month", ServiceRequest.created_at).label("month")
    result = await session.execute(
        select(year, month, func.count(ServiceRequest.id))
        .where(ServiceRequest.created_at >= since)
        .group_by(year, month)
        .order_by(year, month)
    )
    return [(int(y), int(m), count) for y, m, count in result.all()]


async def count_renditions_by_status(
    session: AsyncSession, *, start: datetime, end: datetime
) -> list[tuple[str, int]]:
    result = await session.execute(
        select(Rendition.status, func.count(Rendition.id))
        .where(_between(Rendition.created_at, start, end))
        .group_by(Rendition.status)
        .order_by(Rendition.status)
    )
    return [(status, count) for status, count in result.all()]


async def count_renditions_by_technician(
    session: AsyncSession, *, start: datetime, end: datetime
) -> list[tuple[UUID, str, int]]:
    """
    Renditions created in the range, per author.

    Returns:
        List of (technician_id, full name, rendition count), highest count first
    """
    rendition_count = func.count(Rendition.id).label("rendition_count")
    result = await session.execute(
        select(User.id, User.first_name, User.last_name, rendition_count)
        .join(Rendition, Rendition.technician_id == User.id)
        .where(_between(Rendition.created_at, start, end))
        .group_by(User.id, User.first_name, User.last_name)
        .order_by(rendition_count.desc())
    )
    return [
        (user_id, f"{first_name} {last_name}", count)
        for user_id, first_name, last_name, count in result.all()
    ]


async def sum_expenses_by_category(
    session: AsyncSession, *, start: datetime, end: datetime
) -> list[tuple[str, Decimal, int]]:
    """
    Expenses of renditions created in the range, per category.

    Returns:
        List of (category, total amount, expense count), largest total first
    """
    total = func.sum(RenditionExpense.amount).label("total_amount")
    result = await session.execute(
        select(RenditionExpense.category, total, func.count(RenditionExpense.id))
        .join(Rendition, Rendition.id == RenditionExpense.rendition_id)
        .where(_between(Rendition.created_at, start, end))
        .group_by(RenditionExpense.category)
        .order_by(total.desc())
    )
    return [(category, Decimal(str(amount or 0)), count) for category, amount, count in result.all()]


async def list_technicians(session: AsyncSession) -> list[User]:
    result = await session.execute(
        select(User).where(User.role == UserRole.TECHNICIAN.value).order_by(User.first_name, User.last_name)
    )
    return [user for user in result.scalars().all()]


async def count_requests_per_assignee(
    session: AsyncSession, *, start: datetime, end: datetime, status: str | None = None
) -> dict[UUID, int]:
    """Requests created in the range per assigned technician, optionally only those in ``status``."""
    query = (
        select(ServiceRequest.assigned_to, func.count(ServiceRequest.id))
        .where(ServiceRequest.assigned_to.is_not(None), _between(ServiceRequest.created_at, start, end))
        .group_by(ServiceRequest.assigned_to)
    )
    if status:
        query = query.where(ServiceRequest.status == status)
    result = await session.execute(query)
    return {assignee: count for assignee, count in result.all()}


async def count_renditions_per_technician(
    session: AsyncSession, *, start: datetime, end: datetime, status: str | None = None
) -> dict[UUID, int]:
    """Renditions created in the range per author, optionally only those in ``status``."""
    query = (
        select(Rendition.technician_id, func.count(Rendition.id))
        .where(_between(Rendition.created_at, start, end))
        .group_by(Rendition.technician_id)
    )
    if status:
        query = query.where(Rendition.status == status)
    result = await session.execute(query)
    return {technician_id: count for technician_id, count in result.all()}


async def list_completed_request_spans(
    session: AsyncSession, *, start: datetime, end: datetime
) -> list[tuple[UUID, datetime, datetime]]:
    """(assignee, created_at, completion_date) of completed, assigned requests created in the range."""
    result = await session.execute(
        select(ServiceRequest.assigned_to, ServiceRequest.created_at, ServiceRequest.completion_date).where(
            ServiceRequest.assigned_to.is_not(None),
            ServiceRequest.status == ServiceRequestStatus.COMPLETED.value,
            ServiceRequest.completion_date.is_not(None),
            _between(ServiceRequest.created_at, start, end),
        )
    )
    return [(assignee, created_at, completed_at) for assignee, created_at, completed_at in result.all()]


async def count_created(session: AsyncSession, model, *, start: datetime, end: datetime) -> int:
    """Rows of ``model`` (Project, ServiceRequest or Rendition) created in the range."""
    result = await session.execute(
        select(func.count(model.id)).where(_between(model.created_at, start, end))
    )
    return result.scalar_one()


async def count_projects_completed(session: AsyncSession, *, start: datetime, end: datetime) -> int:
    """Projects currently Completed whose move to Completed was recorded in the range."""
    result = await session.execute(
        select(func.count(func.distinct(Project.id)))
        .join(
            StatusHistoryEntry,
            and_(
                StatusHistoryEntry.entity_type == HistoryEntity.PROJECT.value,
                StatusHistoryEntry.entity_id == Project.id,
            ),
        )
        .where(
            Project.status == ProjectStatus.COMPLETED.value,
            StatusHistoryEntry.status == ProjectStatus.COMPLETED.value,
            _between(StatusHistoryEntry.changed_at, start, end),
        )
    )
    return result.scalar_one()


async def count_requests_completed(session: AsyncSession, *, start: datetime, end: datetime) -> int:
    result = await session.execute(
        select(func.count(ServiceRequest.id)).where(
            ServiceRequest.status == ServiceRequestStatus.COMPLETED.value,
            _between(ServiceRequest.completion_date, start, end),
        )
    )
    return result.scalar_one()


async def count_renditions_approved(session: AsyncSession, *, start: datetime, end: datetime) -> int:
    result = await session.execute(
        select(func.count(Rendition.id)).where(
            Rendition.status == RenditionStatus.APPROVED.value,
            _between(Rendition.review_date, start, end),
        )
    )
    return result.scalar_one()


async def sum_approved_expenses(session: AsyncSession, *, start: datetime, end: datetime) -> Decimal:
    """Total expense amount of renditions approved in the range."""
    result = await session.execute(
        select(func.coalesce(func.sum(RenditionExpense.amount), 0))
        .join(Rendition, Rendition.id == RenditionExpense.rendition_id)
        .where(
            Rendition.status == RenditionStatus.APPROVED.value,
            _between(Rendition.review_date, start, end),
        )
    )
    return Decimal(str(result.scalar_one()))


async def count_request_activity_by_day(
    session: AsyncSession, *, start: datetime, end: datetime
) -> list[tuple[int, str, int]]:
    """
    Service request status changes recorded in the range, per day of month and status.

    Returns:
        List of (day, status, count), by day
    """
    day = extract("day", StatusHistoryEntry.changed_at).label("day")
    result = await session.execute(
        select(day, StatusHistoryEntry.status, func.count(StatusHistoryEntry.id))
        .where(
            StatusHistoryEntry.entity_type == HistoryEntity.SERVICE_REQUEST.value,
            _between(StatusHistoryEntry.changed_at, start, end),
        )
        .group_by(day, StatusHistoryEntry.status)
        .order_by(day, StatusHistoryEntry.status)
    )
    return [(int(d), status, count) for d, status, count in result.all()]
