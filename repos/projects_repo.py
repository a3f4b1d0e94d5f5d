"""Repository for Project database operations."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete as sa_delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.project import Project, ProjectClient
from models.user import User


async def get_by_id(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> Project | None:
    """
    Get a project by ID.

    Args:
        session: Database session
        project_id: Project ID to fetch

    Returns:
        Project if found, None otherwise
    """
    result = await session.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def get_by_order_number(session: AsyncSession, *, order_number: str) -> Project | None:
    """Get the project carrying an order number, if any."""
    result = await session.execute(select(Project).where(Project.order_number == order_number))
    return result.scalar_one_or_none()


def _filtered(
    query,
    *,
    technician_id: UUID | None,
    client_id: UUID | None,
    status: str | None,
    search: str | None,
):
    if technician_id is not None:
        query = query.where(Project.technician_id == technician_id)
    if client_id is not None:
        query = query.where(
            Project.id.in_(
                select(ProjectClient.project_id).where(ProjectClient.user_id == client_id)
            )
        )
    if status:
        query = query.where(Project.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Project.name).like(pattern),
                func.lower(Project.order_number).like(pattern),
                func.lower(Project.location).like(pattern),
            )
        )
    return query


async def list_projects(
    session: AsyncSession,
    *,
    technician_id: UUID | None = None,
    client_id: UUID | None = None,
    status: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> tuple[list[Project], int]:
    """
    List projects, optionally restricted to a technician or a client member.

    Args:
        session: Database session
        technician_id: Only projects assigned to this technician
        client_id: Only projects where this user is a client
        status: Only projects in this status
        search: Case-insensitive match on name, order number or location
        offset: Rows to skip
        limit: Maximum rows to return (None for all)

    Returns:
        Tuple of (projects ordered newest first, total matching count)
    """
    filters = dict(technician_id=technician_id, client_id=client_id, status=status, search=search)
    query = _filtered(select(Project), **filters).order_by(Project.created_at.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    count_query = _filtered(select(func.count(Project.id)), **filters)

    result = await session.execute(query)
    total = (await session.execute(count_query)).scalar_one()
    return [project for project in result.scalars().all()], total


async def count_by_status(session: AsyncSession) -> dict[str, int]:
    """Number of projects per status."""
    result = await session.execute(
        select(Project.status, func.count(Project.id)).group_by(Project.status)
    )
    return {status: count for status, count in result.all()}


async def create(session: AsyncSession, project: Project) -> Project:
    """
    Create a new project.

    Args:
        session: Database session
        project: Project instance to create

    Returns:
        Created project
    """
    session.add(project)
    await session.flush()
    await session.refresh(project)
    return project


async def save(session: AsyncSession, project: Project) -> Project:
    """Flush pending changes on an existing project."""
    await session.flush()
    await session.refresh(project)
    return project


async def delete(session: AsyncSession, project: Project) -> None:
    """Delete a project and its client memberships."""
    await session.execute(sa_delete(ProjectClient).where(ProjectClient.project_id == project.id))
    await session.delete(project)
    await session.flush()


async def list_client_ids(session: AsyncSession, *, project_id: UUID) -> list[UUID]:
    """Client user IDs of a project, in the order they were added."""
    result = await session.execute(
        select(ProjectClient.user_id)
        .where(ProjectClient.project_id == project_id)
        .order_by(ProjectClient.added_at)
    )
    return [row for row in result.scalars().all()]


async def list_client_ids_for_projects(
    session: AsyncSession,
    *,
    project_ids: list[UUID],
) -> dict[UUID, list[UUID]]:
    """Map project_id -> client user IDs for a batch of projects."""
    if not project_ids:
        return {}
    result = await session.execute(
        select(ProjectClient.project_id, ProjectClient.user_id)
        .where(ProjectClient.project_id.in_(project_ids))
        .order_by(ProjectClient.added_at)
    )
    mapping: dict[UUID, list[UUID]] = {project_id: [] for project_id in project_ids}
    for project_id, user_id in result.all():
        mapping[project_id].append(user_id)
    return mapping


async def add_client(session: AsyncSession, *, project_id: UUID, user_id: UUID) -> None:
    """Add a client membership row."""
    session.add(ProjectClient(project_id=project_id, user_id=user_id))
    await session.flush()


async def replace_clients(session: AsyncSession, *, project_id: UUID, user_ids: list[UUID]) -> None:
    """Replace the full client set of a project."""
    await session.execute(sa_delete(ProjectClient).where(ProjectClient.project_id == project_id))
    for user_id in dict.fromkeys(user_ids):
        session.add(ProjectClient(project_id=project_id, user_id=user_id))
    await session.flush()


async def count_all(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(Project.id)))
    return result.scalar_one()


async def count_created_since(session: AsyncSession, *, since: datetime) -> int:
    """Projects created at or after ``since``."""
    result = await session.execute(
        select(func.count(Project.id)).where(Project.created_at >= since)
    )
    return result.scalar_one()


async def count_by_technician(session: AsyncSession, *, limit: int = 10) -> list[tuple[UUID, str, int]]:
    """
    Busiest technicians by number of assigned projects.

    Returns:
        List of (technician_id, full name, project count), highest count first
    """
    project_count = func.count(Project.id).label("project_count")
    result = await session.execute(
        select(User.id, User.first_name, User.last_name, project_count)
        .join(Project, Project.technician_id == User.id)
        .group_by(User.id, User.first_name, User.last_name)
        .order_by(project_count.desc())
        .limit(limit)
    )
    return [
        (user_id, f"{first_name} {last_name}", count)
        for user_id, first_name, last_name, count in result.all()
    ]
