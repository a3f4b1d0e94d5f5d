"""Repository for project milestones and location points."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.project_assets import LocationPoint, Milestone


async def list_milestones(session: AsyncSession, *, project_id: UUID) -> list[Milestone]:
    """Milestones of a project in creation order."""
    result = await session.execute(
        select(Milestone).where(Milestone.project_id == project_id).order_by(Milestone.position)
    )
    return [milestone for milestone in result.scalars().all()]


async def get_milestone(
    session: AsyncSession,
    *,
    project_id: UUID,
    milestone_id: UUID,
) -> Milestone | None:
    """Get one milestone, scoped to its project."""
    result = await session.execute(
        select(Milestone).where(Milestone.id == milestone_id, Milestone.project_id == project_id)
    )
    return result.scalar_one_or_none()


async def create_milestone(session: AsyncSession, milestone: Milestone) -> Milestone:
    """
    Append a milestone at the end of its project's list.

    Args:
        session: Database session
        milestone: Milestone instance (position is assigned here)

    Returns:
        Created milestone
    """
    result = await session.execute(
        select(func.count(Milestone.id)).where(Milestone.project_id == milestone.project_id)
    )
    milestone.position = result.scalar_one()
    session.add(milestone)
    await session.flush()
    await session.refresh(milestone)
    return milestone


async def save_milestone(session: AsyncSession, milestone: Milestone) -> Milestone:
    await session.flush()
    await session.refresh(milestone)
    return milestone


async def delete_milestone(session: AsyncSession, milestone: Milestone) -> None:
    await session.delete(milestone)
    await session.flush()


async def list_location_points(session: AsyncSession, *, project_id: UUID) -> list[LocationPoint]:
    """Location points of a project, oldest first."""
    result = await session.execute(
        select(LocationPoint)
        .where(LocationPoint.project_id == project_id)
        .order_by(LocationPoint.created_at)
    )
    return [point for point in result.scalars().all()]


async def get_location_point(
    session: AsyncSession,
    *,
    project_id: UUID,
    point_id: UUID,
) -> LocationPoint | None:
    result = await session.execute(
        select(LocationPoint).where(
            LocationPoint.id == point_id,
            LocationPoint.project_id == project_id,
        )
    )
    return result.scalar_one_or_none()


async def create_location_point(session: AsyncSession, point: LocationPoint) -> LocationPoint:
    session.add(point)
    await session.flush()
    await session.refresh(point)
    return point


async def delete_location_point(session: AsyncSession, point: LocationPoint) -> None:
    await session.delete(point)
    await session.flush()


async def save_location_point(session: AsyncSession, point: LocationPoint) -> LocationPoint:
    await session.flush()
    await session.refresh(point)
    return point
