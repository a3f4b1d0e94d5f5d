"""Service layer for users and authentication."""

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.actor import ActorContext
from auth.jwt import create_access_token
from auth.passwords import hash_password, verify_password
from db import utcnow
from models.user import ProfileUpdate, User, UserCreate, UserRole, UserUpdate
from repos import users_repo
from services.access_policy import require, require_admin

logger = logging.getLogger(__name__)


async def _get_or_404(session: AsyncSession, user_id: UUID) -> User:
    user = await users_repo.get_by_id(session, user_id=user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def login(session: AsyncSession, *, email: str, password: str) -> tuple[str, User]:
    """
    Authenticate by email and password.

    Returns:
        Tuple of (access token, user)

    Raises:
        HTTPException: 401 on bad credentials, 403 if the user is inactive
    """
    user = await users_repo.get_by_email(session, email=email.lower())
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )

    user.last_login = utcnow()
    user = await users_repo.save(session, user)
    await session.commit()
    return create_access_token(user.id, user.role), user


async def create_user(session: AsyncSession, *, actor: ActorContext, payload: UserCreate) -> User:
    """
    Create a user (admin only). Also backs POST /auth/register.

    Raises:
        HTTPException: 403 if not admin, 409 if the email is taken
    """
    require_admin(actor, "Only administrators can create users")

    email = payload.email.lower()
    if await users_repo.get_by_email(session, email=email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        )

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        phone=payload.phone,
        role=payload.role.value,
        active=payload.active,
        password_hash=hash_password(payload.password),
    )
    user = await users_repo.create(session, user)
    await session.commit()
    logger.info("Created user %s with role %s", user.id, user.role)
    return user


async def list_users(
    session: AsyncSession,
    *,
    actor: ActorContext,
    role: str | None = None,
    search: str | None = None,
    active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[User], int]:
    require_admin(actor, "Only administrators can list users")
    return await users_repo.list_users(
        session,
        role=role,
        search=search,
        active=active,
        offset=(page - 1) * limit,
        limit=limit,
    )


async def get_user(session: AsyncSession, *, actor: ActorContext, user_id: UUID) -> User:
    """Admins read anyone; other users only themselves."""
    require(actor.is_admin or actor.user_id == user_id, "You do not have permission to view this user")
    return await _get_or_404(session, user_id)


async def update_user(
    session: AsyncSession,
    *,
    actor: ActorContext,
    user_id: UUID,
    payload: UserUpdate,
) -> User:
    """
    Update any user field (admin only).

    Raises:
        HTTPException: 403 if not admin, 404 if missing, 409 on duplicate email
    """
    require_admin(actor, "Only administrators can update users")
    user = await _get_or_404(session, user_id)

    data = payload.model_dump(exclude_unset=True)
    if "email" in data and data["email"] is not None:
        email = data["email"].lower()
        existing = await users_repo.get_by_email(session, email=email)
        if existing and existing.id != user.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A user with this email already exists",
            )
        data["email"] = email
    if data.get("password"):
        user.password_hash = hash_password(data.pop("password"))
    data.pop("password", None)
    if data.get("role") is not None:
        data["role"] = UserRole(data["role"]).value

    for field, value in data.items():
        if value is not None:
            setattr(user, field, value)

    user = await users_repo.save(session, user)
    await session.commit()
    return user


async def update_profile(session: AsyncSession, *, actor: ActorContext, payload: ProfileUpdate) -> User:
    """Let a user edit their own name, phone and password."""
    user = await _get_or_404(session, actor.user_id)

    data = payload.model_dump(exclude_unset=True)
    password = data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for field, value in data.items():
        if value is not None:
            setattr(user, field, value)

    user = await users_repo.save(session, user)
    await session.commit()
    return user


async def set_profile_picture(session: AsyncSession, *, actor: ActorContext, url: str) -> User:
    user = await _get_or_404(session, actor.user_id)
    user.profile_picture = url
    user = await users_repo.save(session, user)
    await session.commit()
    return user


async def delete_user(session: AsyncSession, *, actor: ActorContext, user_id: UUID) -> None:
    """
    Delete a user (admin only, never oneself).

    Raises:
        HTTPException: 403 if not admin, 400 when deleting oneself, 404 if missing
    """
    require_admin(actor, "Only administrators can delete users")
    if actor.user_id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )
    user = await _get_or_404(session, user_id)
    await users_repo.delete(session, user)
    await session.commit()


async def seed_default_admin(session: AsyncSession) -> User | None:
    """Create the default administrator when no admin exists yet."""
    if await users_repo.count_by_role(session, role=UserRole.ADMIN.value):
        return None

    admin = User(
        first_name="Admin",
        last_name="Sistema",
        email=config.settings.DEFAULT_ADMIN_EMAIL.lower(),
        role=UserRole.ADMIN.value,
        active=True,
        password_hash=hash_password(config.settings.DEFAULT_ADMIN_PASSWORD),
    )
    admin = await users_repo.create(session, admin)
    await session.commit()
    logger.info("Seeded default administrator %s", admin.email)
    return admin
