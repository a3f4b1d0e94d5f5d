"""Repository for ExpenseCategory database operations."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.expense_category import ExpenseCategory


async def get_by_name(session: AsyncSession, *, name: str) -> ExpenseCategory | None:
    result = await session.execute(
        select(ExpenseCategory).where(func.lower(ExpenseCategory.name) == name.lower())
    )
    return result.scalar_one_or_none()


async def list_categories(session: AsyncSession, *, active_only: bool = True) -> list[ExpenseCategory]:
    """
    List expense categories by name.

    Args:
        session: Database session
        active_only: Skip deactivated categories

    Returns:
        List of categories
    """
    query = select(ExpenseCategory).order_by(ExpenseCategory.name)
    if active_only:
        query = query.where(ExpenseCategory.active.is_(True))
    result = await session.execute(query)
    return [category for category in result.scalars().all()]


async def count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(ExpenseCategory.id)))
    return result.scalar_one()


async def create(session: AsyncSession, category: ExpenseCategory) -> ExpenseCategory:
    session.add(category)
    await session.flush()
    await session.refresh(category)
    return category
