"""Authentication endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_current_user, get_db
from api.responses import ApiResponse
from auth.schemas import LoginRequest, LoginResponse
from models.user import User, UserCreate, UserResponse
from services import users_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/login", response_model=ApiResponse[LoginResponse])
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange email and password for a bearer token.

    Returns:
        Token and the authenticated user
    """
    try:
        token, user = await users_service.login(db, email=request.email, password=request.password)
        return ApiResponse(data=LoginResponse(token=token, user=UserResponse.model_validate(user)))
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Login failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log in",
        )


@router.get("/auth/me", response_model=ApiResponse[UserResponse])
async def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user."""
    return ApiResponse(data=UserResponse.model_validate(current_user))


@router.post("/auth/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Register a new user. Only administrators may register users."""
    try:
        user = await users_service.create_user(db, actor=actor, payload=payload)
        return ApiResponse(data=UserResponse.model_validate(user), message="User registered")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("User registration failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register user",
        )
