"""Service layer for the expense category catalogue."""

import logging

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from models.expense_category import DEFAULT_EXPENSE_CATEGORIES, ExpenseCategory, ExpenseCategoryCreate
from repos import expense_categories_repo
from services.access_policy import require_admin

logger = logging.getLogger(__name__)


async def list_categories(session: AsyncSession, *, include_inactive: bool = False) -> list[ExpenseCategory]:
    return await expense_categories_repo.list_categories(session, active_only=not include_inactive)


async def create_category(
    session: AsyncSession,
    *,
    actor: ActorContext,
    payload: ExpenseCategoryCreate,
) -> ExpenseCategory:
    """
    Add a category (admin only).

    Raises:
        HTTPException: 403 if not admin, 409 if the name exists
    """
    require_admin(actor, "Only administrators can create expense categories")
    if await expense_categories_repo.get_by_name(session, name=payload.name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An expense category with this name already exists",
        )
    category = await expense_categories_repo.create(
        session,
        ExpenseCategory(
            name=payload.name,
            description=payload.description,
            active=payload.active,
            created_by=actor.user_id,
        ),
    )
    await session.commit()
    return category


async def seed_default_categories(session: AsyncSession) -> int:
    """Insert the default categories into an empty catalogue. Returns how many were added."""
    if await expense_categories_repo.count(session):
        return 0
    for name, description in DEFAULT_EXPENSE_CATEGORIES:
        await expense_categories_repo.create(session, ExpenseCategory(name=name, description=description))
    await session.commit()
    logger.info("Seeded %d expense categories", len(DEFAULT_EXPENSE_CATEGORIES))
    return len(DEFAULT_EXPENSE_CATEGORIES)
