"""Repository for User database operations."""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User, UserRole


async def get_by_id(session: AsyncSession, *, user_id: UUID) -> User | None:
    """
    Get a user by ID.

    Args:
        session: Database session
        user_id: User ID to fetch

    Returns:
        User if found, None otherwise
    """
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_by_email(session: AsyncSession, *, email: str) -> User | None:
    """Get a user by email (case-insensitive; emails are stored lowercased)."""
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


def _filtered(query, *, role: str | None, search: str | None, active: bool | None):
    if role:
        query = query.where(User.role == role)
    if active is not None:
        query = query.where(User.active.is_(active))
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                User.email.like(pattern),
            )
        )
    return query


async def list_users(
    session: AsyncSession,
    *,
    role: str | None = None,
    search: str | None = None,
    active: bool | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> tuple[list[User], int]:
    """
    List users with optional filters.

    Args:
        session: Database session
        role: Only users with this role
        search: Case-insensitive match on first/last name or email
        active: Only active (True) or inactive (False) users
        offset: Rows to skip
        limit: Maximum rows to return (None for all)

    Returns:
        Tuple of (users ordered newest first, total matching count)
    """
    query = _filtered(select(User), role=role, search=search, active=active)
    count_query = _filtered(select(func.count(User.id)), role=role, search=search, active=active)

    query = query.order_by(User.created_at.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)

    result = await session.execute(query)
    total = (await session.execute(count_query)).scalar_one()
    return [user for user in result.scalars().all()], total


async def list_active_admin_ids(session: AsyncSession) -> list[UUID]:
    """IDs of every active administrator."""
    result = await session.execute(
        select(User.id).where(User.role == UserRole.ADMIN.value, User.active.is_(True))
    )
    return [row for row in result.scalars().all()]


async def count_by_role(session: AsyncSession, *, role: str) -> int:
    """Count users holding a role."""
    result = await session.execute(select(func.count(User.id)).where(User.role == role))
    return result.scalar_one()


async def create(session: AsyncSession, user: User) -> User:
    """
    Create a new user.

    Args:
        session: Database session
        user: User instance to create

    Returns:
        Created user
    """
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def save(session: AsyncSession, user: User) -> User:
    """Flush pending changes on an existing user."""
    await session.flush()
    await session.refresh(user)
    return user


async def delete(session: AsyncSession, user: User) -> None:
    """Hard-delete a user."""
    await session.delete(user)
    await session.flush()
