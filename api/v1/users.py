"""User endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse, PaginatedResponse, paginated
from models.user import ProfileUpdate, UserCreate, UserResponse, UserRole, UserUpdate
from services import storage, users_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/users", response_model=PaginatedResponse[UserResponse])
async def list_users_endpoint(
    role: UserRole | None = None,
    search: str | None = None,
    active: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List users (admin only)."""
    users, total = await users_service.list_users(
        db,
        actor=actor,
        role=role.value if role else None,
        search=search,
        active=active,
        page=page,
        limit=limit,
    )
    return PaginatedResponse(**paginated([UserResponse.model_validate(u) for u in users], total, page, limit))


@router.post("/users", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user_endpoint(
    payload: UserCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await users_service.create_user(db, actor=actor, payload=payload)
        return ApiResponse(data=UserResponse.model_validate(user), message="User created")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to create user")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user",
        )


@router.put("/users/me/profile", response_model=ApiResponse[UserResponse])
async def update_profile_endpoint(
    payload: ProfileUpdate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Update the caller's own profile."""
    try:
        user = await users_service.update_profile(db, actor=actor, payload=payload)
        return ApiResponse(data=UserResponse.model_validate(user), message="Profile updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update profile")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile",
        )


@router.put("/users/me/profile-picture", response_model=ApiResponse[UserResponse])
async def upload_profile_picture_endpoint(
    file: UploadFile = File(...),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Replace the caller's profile picture."""
    try:
        stored = await storage.save_upload(file, "profiles")
        user = await users_service.set_profile_picture(db, actor=actor, url=stored.url)
        return ApiResponse(data=UserResponse.model_validate(user), message="Profile picture updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update profile picture")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile picture",
        )


@router.get("/users/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user_endpoint(
    user_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    user = await users_service.get_user(db, actor=actor, user_id=user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.put("/users/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user_endpoint(
    user_id: UUID,
    payload: UserUpdate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await users_service.update_user(db, actor=actor, user_id=user_id, payload=payload)
        return ApiResponse(data=UserResponse.model_validate(user), message="User updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user",
        )


@router.delete("/users/{user_id}", response_model=ApiResponse[None])
async def delete_user_endpoint(
    user_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await users_service.delete_user(db, actor=actor, user_id=user_id)
        return ApiResponse(message="User deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete user",
        )
