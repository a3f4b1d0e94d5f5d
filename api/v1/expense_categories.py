"""Expense category catalogue endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse
from models.expense_category import ExpenseCategoryCreate, ExpenseCategoryResponse
from services import expense_categories_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/expense-categories", response_model=ApiResponse[list[ExpenseCategoryResponse]])
async def list_expense_categories_endpoint(
    include_inactive: bool = False,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    categories = await expense_categories_service.list_categories(db, include_inactive=include_inactive)
    return ApiResponse(data=[ExpenseCategoryResponse.model_validate(category) for category in categories])


@router.post(
    "/expense-categories",
    response_model=ApiResponse[ExpenseCategoryResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_expense_category_endpoint(
    payload: ExpenseCategoryCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create an expense category (admin only). Names are unique, case-insensitively."""
    try:
        category = await expense_categories_service.create_category(db, actor=actor, payload=payload)
        return ApiResponse(data=ExpenseCategoryResponse.model_validate(category), message="Expense category created")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to create expense category")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create expense category",
        )
